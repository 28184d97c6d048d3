import requests
import json
import sys

def post_chat(message):
    url = "http://localhost:8000/api/chat"
    payload = {
        "message": message,
        "history": [],
        "model": "openrouter"
    }

    print(f"Connecting to {url}...")
    try:
        r = requests.post(url, json=payload, timeout=60)
        print(f"Status Code: {r.status_code}")
        if r.status_code != 200:
            print(f"Error: {r.text}")
            return

        body = r.json()
        for call in body.get("tool_calls", []):
            print(f"Tool: {call['tool']}({json.dumps(call['args'])})")
            print(f"Result: {json.dumps(call['result'])[:500]}")
        print(f"Answer: {body['answer']}")
    except requests.RequestException as e:
        print(f"Connection failed: {e}")

if __name__ == "__main__":
    post_chat(" ".join(sys.argv[1:]) or "What's the weather in Berlin for the next 3 days?")

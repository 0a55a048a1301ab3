import time
import subprocess
import httpx
import sys
import os
import signal

from backend.app.core.jwt import create_access_token

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"
MONTH = "2025-03"

# Run backend/seed_demo.py first so there are contracts to generate from.
TOKEN = create_access_token({"sub": "persistence-check", "user_id": 1, "role": "ADMIN"})
HEADERS = {"Authorization": f"Bearer {TOKEN}"}

def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for i in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False

def start_server(echo=False):
    env = {**os.environ, "DB_ECHO": "True"} if echo else None
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env,
    )

def stop_server(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()

def count_obligations():
    resp = httpx.get(f"{BASE_URL}{API_PREFIX}/obligations", params={"period": MONTH}, headers=HEADERS)
    resp.raise_for_status()
    return len(resp.json())

def run_verification():
    # 1. Start Server (First Run)
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = start_server(echo=True)

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stdout:", server_logs[0].decode())
            print("Server Stderr:", server_logs[1].decode())
            raise RuntimeError("Server start failed")

        # 2. Generate the month
        print(f"\n--- [Step 2] Generating obligations for {MONTH} ---")
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/obligations/generate", json={"month": MONTH}, headers=HEADERS)
        if resp.status_code != 200:
            print(f"❌ Generation Failed: {resp.status_code} {resp.text}")
            raise RuntimeError("Generation failed")
        print(f"✅ Generation run: {resp.json()}")
        before = count_obligations()
        print(f"ℹ️  {before} obligations stored for {MONTH}")

    finally:
        print("\n--- [Step 3] Stopping Server ---")
        stop_server(proc)

    time.sleep(2) # Wait for port release

    # 3. Restart Server
    print("\n--- [Step 4] Restarting Server (Verification) ---")
    proc2 = start_server()

    try:
        if not wait_for_server():
            raise RuntimeError("Server restart failed")

        print("\n--- [Step 5] Re-reading obligations (Post-Restart) ---")
        after = count_obligations()
        if after != before:
            print(f"❌ Obligation count changed across restart: {before} -> {after}")
            raise RuntimeError("Obligations not persisted")
        print(f"✅ {after} obligations persisted")

        print("\n--- [Step 6] Re-running generation (must skip everything) ---")
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/obligations/generate", json={"month": MONTH}, headers=HEADERS)
        result = resp.json()
        if resp.status_code == 200 and result["generated_count"] == 0:
            print(f"✅ Idempotent: {result['skipped_count']} skipped")
        else:
            print(f"❌ Duplicate generation after restart: {resp.status_code} {resp.text}")
            raise RuntimeError("Generation not idempotent")

    finally:
        print("\n--- [Step 7] Stopping Server ---")
        stop_server(proc2)

if __name__ == "__main__":
    run_verification()

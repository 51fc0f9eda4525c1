import os
import threading
import time
import webbrowser
import uvicorn

from ahamai.main import app

def main():
    port = int(os.getenv("AHAMAI_PORT", "8000"))
    config = uvicorn.Config(app, host="127.0.0.1", port=port, log_level="info", access_log=False)
    server = uvicorn.Server(config)

    t = threading.Thread(target=server.run, daemon=True)
    t.start()

    time.sleep(0.8)
    webbrowser.open(f"http://127.0.0.1:{port}/docs")

    t.join()

if __name__ == "__main__":
    main()

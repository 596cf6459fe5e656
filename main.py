"""LoreLens dev launcher. Starts the attribution API in watch mode."""

import argparse
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13015")


def main():
    parser = argparse.ArgumentParser(description="LoreLens dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Settings storage directory (default: ./data)")
    parser.add_argument("--port", default=PORT, help=f"API port (default: {PORT})")
    parser.add_argument("--mcp", action="store_true",
                        help="Run the MCP server instead of the HTTP API")
    args = parser.parse_args()

    # Build env for the subprocess so the backend picks up the same data dir
    env = os.environ.copy()
    if args.data_dir:
        env["DATA_DIR"] = str(args.data_dir.resolve())

    if args.mcp:
        cmd = ["uv", "run", "python", "-m", "backend.mcp_server"]
        print("Starting MCP server on stdio ...", file=sys.stderr)
    else:
        cmd = ["uv", "run", "uvicorn", "backend.app:app", "--reload",
               "--host", HOST, "--port", str(args.port)]
        print(f"Starting API on http://localhost:{args.port} ...")

    proc = subprocess.Popen(cmd, cwd=ROOT, env=env)

    def shutdown(*_):
        print("\nShutting down...", file=sys.stderr)
        proc.terminate()
        proc.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    proc.wait()


if __name__ == "__main__":
    main()

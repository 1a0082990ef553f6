"""
Swish Payment Gateway - Uvicorn Launcher
Run this file to start the development server.

Usage:
    python run.py
    python run.py --port 3001
    python run.py --reload
"""
import argparse
import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Swish Payment Gateway Backend Server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=3001, help="Bind port (default: 3001)")
    parser.add_argument("--reload", action="store_true", help="Enable hot reload for development")

    args = parser.parse_args()

    print(f"""
    ========================================================
      Swish Payment Gateway -- Backend Server
      API:     http://{args.host}:{args.port}/payments
      Docs:    http://localhost:{args.port}/docs
      Health:  http://localhost:{args.port}/health
    ========================================================
    """)

    # Single worker: the default payment store lives in process memory
    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=1,
        log_level="info",
    )


if __name__ == "__main__":
    main()

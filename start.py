"""Server startup - imports the real app with error handling."""
import os
import sys
import traceback

port = int(os.environ.get("PORT", "8000"))
import_error = None

# Try to import the real app
try:
    from src.api.server import app
    print("[start.py] Shorts Generator API imported successfully", flush=True)
except Exception as e:
    import_error = f"{type(e).__name__}: {e}\n{traceback.format_exc()}"
    print(f"[start.py] IMPORT FAILED: {import_error}", flush=True)
    # Minimal app that reports the import error on every health probe
    from fastapi import FastAPI
    from fastapi.responses import PlainTextResponse
    app = FastAPI()
    err_msg = import_error

    @app.get("/api/health", response_class=PlainTextResponse, status_code=503)
    async def health():
        return f"UNHEALTHY - Import error:\n{err_msg}"

if __name__ == "__main__":
    import uvicorn
    print(f"[start.py] Starting on port {port}", flush=True)
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
    sys.exit(0)

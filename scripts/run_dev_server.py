"""
Start a local development server for the Reembolso API.

Requires SUPABASE_URL and SUPABASE_ANON_KEY (environment or .env).
"""

import uvicorn

if __name__ == "__main__":
    print("=" * 60)
    print("Starting Reembolso API")
    print("=" * 60)
    print()
    print("   - Health Check:  GET  http://localhost:8000/health")
    print("   - Session:       GET  http://localhost:8000/auth/session")
    print("   - Expenses:      GET  http://localhost:8000/expenses")
    print("   - API Docs:           http://localhost:8000/docs")
    print()
    print("Press Ctrl+C to stop")
    print("=" * 60)

    uvicorn.run(
        "reembolso.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )

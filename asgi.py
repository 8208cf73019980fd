"""
asgi.py -- Application assembly for SiteGate.

This is the ONLY file that imports from both api/ and web/. It joins the two
independent layers into a single ASGI app without coupling them to each other.
api/main.py knows nothing about web/; web/routes.py knows nothing about api/.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app
from web.routes import router as web_router

# Mounted before startup so the lifespan redirect check can resolve
# "home", "login" and the other page names.
app.include_router(web_router, tags=["Web UI"])

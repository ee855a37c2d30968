"""
asgi.py -- Application assembly for PageDesk.

The only file that imports from both api/ and web/. api/main.py builds the
app, the identity module and the JSON routes; web/routes.py holds the
manager UI. Neither layer imports the other.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app
from web.routes import router as web_router

app.include_router(web_router, tags=["Manager UI"])

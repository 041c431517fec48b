"""
Install-time asset table.

Every path is fetched and stored into the main namespace when the engine
installs. A single failed fetch fails the whole installation.
"""

PRECACHE_ASSETS = [
    "/",
    "/index.html",
    "/offline.html",
    "/style.css",
    "/app.js",
    "/manifest.json",
    "/icons/icon-72x72.png",
    "/icons/icon-96x96.png",
    "/icons/icon-128x128.png",
    "/icons/icon-144x144.png",
    "/icons/icon-152x152.png",
    "/icons/icon-192x192.png",
    "/icons/icon-384x384.png",
    "/icons/icon-512x512.png",
    "/sounds/notification.mp3",
    "/fonts/inter.woff2",
    "/fonts/jakarta.woff2",
]

# Path prefixes served network-first from the API namespace
API_PREFIXES = [
    "/api/weather",
    "/api/ai",
    "/api/contacts",
]

"""
Image Relay package.

Provides:
- A generation dispatcher in front of the Stability AI text-to-image API
- FastAPI transports: HTTP /generate-image and a realtime WebSocket channel
- Per-address fixed-window abuse guard and Cloudinary uploads
"""

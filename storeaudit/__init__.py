"""Store audit capture & status pipeline.

Server side: FastAPI application (``storeaudit.main``) recording audits, images
and deriving store status. Client side: ``storeaudit.client`` drives the
three-photo capture session against that API.
"""

__version__ = "1.0.0"

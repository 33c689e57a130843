"""v1 router package. All /api/v1/* endpoints live here.

Files:
  stores.py  : store detail, location update, status action, reset
  audits.py  : audit create / list / get / patch / delete / finalize
  images.py  : multipart photo upload and image lookups

Rule: Routers only handle HTTP (request parsing, response shaping).
      All business logic delegates to storeaudit/services/.
"""

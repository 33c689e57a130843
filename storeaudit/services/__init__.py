"""Services package. All business logic lives here, never in routers.

Files:
  store_status.py : status derivation, the single status write path, resets
  audit.py        : audit recorder (create / update / delete / finalize)
  image.py        : photo upload via the storage boundary, image append
  storage.py      : watermarking + persistence boundary (Pillow, local media dir)
  store.py        : minimal store create / read / partial update

Rule: routers call services, services call repositories, repositories call the DB.
      No SQLAlchemy queries in routers. No FastAPI imports in services.
"""

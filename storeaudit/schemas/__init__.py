"""Pydantic schemas package.

Folder intent:
  common.py : CamelModel base + HealthResponse (all schemas inherit CamelModel)
  store.py  : store create/update, status action, detail with audit history
  audit.py  : audit create/update, audit with images, finalize report
  image.py  : image response
"""

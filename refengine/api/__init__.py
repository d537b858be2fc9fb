"""API router for v1 endpoints."""

from fastapi import APIRouter

from refengine.api import admin, references

router = APIRouter()

# Reference codec, search and preview routes
router.include_router(references.router, tags=["references"])

# Maintenance routes
router.include_router(admin.router, tags=["admin"])

"""
restcore router collecting all path operations of all API versions
"""

from fastapi import APIRouter


router = APIRouter()

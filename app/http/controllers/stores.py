"""
Store credential routes. The Admin API token saved here is what the polling
sync uses; it is never returned to the frontend.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.http.requests.schemas import SaveTokenRequest, SaveTokenResponse
from app.services.store_registry import save_access_token

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/save-token", response_model=SaveTokenResponse)
async def save_token(body: SaveTokenRequest, db: Session = Depends(get_db)):
    """Save the Shopify Admin API token for a store."""
    try:
        store = save_access_token(db, body.storeId, body.apiToken)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return SaveTokenResponse(message="Token saved successfully", storeId=store.id)

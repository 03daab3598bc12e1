# backend/trois_quarts/api/v1/endpoints/address.py

"""
Endpoints de validación de la dirección de entrega.
"""

from fastapi import APIRouter, Depends
import logging

from trois_quarts.api import deps
from trois_quarts.schemas import address_schema
from trois_quarts.services.address_validation_service import AddressValidationService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/validate", response_model=address_schema.AddressValidationResponse)
async def validate_address(
    request: address_schema.AddressValidationRequest,
    address_service: AddressValidationService = Depends(deps.get_address_service),
) -> address_schema.AddressValidationResponse:
    """Comprueba si se entrega en la dirección indicada."""
    result = await address_service.validate_address(request.address, request.zip_code)
    logger.info(f"📍 DIRECCIÓN: '{request.address}' ({request.zip_code}) -> valid={result.valid}")
    return result


@router.post("/validate-zip", response_model=address_schema.AddressValidationResponse)
async def validate_zip(
    request: address_schema.ZipValidationRequest,
    address_service: AddressValidationService = Depends(deps.get_address_service),
) -> address_schema.AddressValidationResponse:
    """Comprueba si se entrega en el código postal indicado."""
    return await address_service.validate_zip_code(request.zip_code)

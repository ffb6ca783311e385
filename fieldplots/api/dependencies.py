"""
Dependency injection for FastAPI.
"""
from typing import Annotated
from fastapi import Depends

from fieldplots.domain.blueprints import BlueprintRegistry, default_registry
from fieldplots.infrastructure.observation_store_client import (
    ObservationStoreClient,
    get_store_client,
)
from fieldplots.services.application.survey_analysis_service import SurveyAnalysisService


def get_blueprint_registry() -> BlueprintRegistry:
    """
    Dependency factory for the blueprint registry.

    Returns:
        The process-wide BlueprintRegistry
    """
    return default_registry


def get_survey_analysis_service(
    store_client: Annotated[ObservationStoreClient, Depends(get_store_client)],
    registry: Annotated[BlueprintRegistry, Depends(get_blueprint_registry)],
) -> SurveyAnalysisService:
    """
    Dependency factory for SurveyAnalysisService.

    Args:
        store_client: Observation store client (injected)
        registry: Blueprint registry (injected)

    Returns:
        SurveyAnalysisService instance
    """
    return SurveyAnalysisService(store_client=store_client, registry=registry)


# Type aliases for cleaner route signatures
BlueprintRegistryDep = Annotated[BlueprintRegistry, Depends(get_blueprint_registry)]
SurveyAnalysisServiceDep = Annotated[SurveyAnalysisService, Depends(get_survey_analysis_service)]

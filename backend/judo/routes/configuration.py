"""
Configuration API Route
Read-only view of the active tournament configuration.
"""

from fastapi import APIRouter, Depends

from judo.config import TournamentConfig, get_config

router = APIRouter()


@router.get("/config", response_model=TournamentConfig)
def read_config(config: TournamentConfig = Depends(get_config)):
    return config

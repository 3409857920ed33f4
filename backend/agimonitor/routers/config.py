"""Source registry configuration router."""

from fastapi import APIRouter, HTTPException

from agimonitor import config_store
from agimonitor.schemas import ConfigText
from agimonitor.settings import settings

router = APIRouter(prefix="/api/config", tags=["config"])


@router.get("/sources", response_model=ConfigText)
def api_get_sources() -> ConfigText:
    """Get the source registry YAML."""
    if not settings.sources_path.exists():
        raise HTTPException(status_code=404, detail="Source registry not found")
    return ConfigText(text=config_store.read_text(settings.sources_path))


@router.put("/sources", response_model=ConfigText)
def api_set_sources(cfg: ConfigText) -> ConfigText:
    """Replace the source registry YAML."""
    try:
        config_store.write_text_validated_yaml(settings.sources_path, cfg.text)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return cfg

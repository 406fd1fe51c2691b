# fastapi web api for presentation scoring and refinement
import logging

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from . import __version__
from .config import RefinementConfig, validate_config
from .errors import ConfigurationError
from .framework_analyzer import FrameworkAnalyzer
from .frameworks import get_all_frameworks
from .llm_service import OllamaLLMService
from .models import RecommendFrameworkRequest, RefineDocumentRequest, ScoreDocumentRequest
from .orchestrator import create_orchestrator
from .validation_agent import ValidationAgent

# configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# initialize fastapi application
app = FastAPI(
    title="Deck Refinement API",
    description="Score presentations and refine them iteratively with a local LLM",
    version=__version__,
)

# add cors middleware to allow cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# configuration for every request, read from the environment
def get_config() -> RefinementConfig:
    try:
        return validate_config(RefinementConfig.from_env())
    except (ConfigurationError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid configuration: {str(e)}")


def get_llm_service(config: RefinementConfig = Depends(get_config)):
    return OllamaLLMService(config.llm)


@app.get("/health")
def health_check(llm_service=Depends(get_llm_service)):
    """Health check endpoint"""
    availability = llm_service.check_availability()
    return {
        "status": "healthy",
        "service": "deckrefine",
        "version": __version__,
        "llm_available": availability.ok,
        "models": availability.value if availability.ok else [],
    }


@app.get("/frameworks")
def list_frameworks():
    """List the supported narrative frameworks"""
    return {"frameworks": [framework.model_dump(mode="json") for framework in get_all_frameworks()]}


@app.post("/frameworks/recommend")
def recommend_framework(
    body: RecommendFrameworkRequest,
    config: RefinementConfig = Depends(get_config),
    llm_service=Depends(get_llm_service),
):
    """Recommend a framework for a document"""
    try:
        analyzer = FrameworkAnalyzer(config, llm_service)
        analysis = analyzer.recommend(body.document, body.request)
        return analysis.model_dump(mode="json")
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error recommending framework: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Framework analysis failed: {str(e)}")


@app.post("/score")
def score_document(
    body: ScoreDocumentRequest,
    config: RefinementConfig = Depends(get_config),
    llm_service=Depends(get_llm_service),
):
    """Score a document on the four quality dimensions"""
    try:
        framework_id = body.framework_id
        if framework_id is None:
            analysis = FrameworkAnalyzer(config, llm_service).recommend(body.document, body.request)
            framework_id = analysis.recommended_framework

        scoring = ValidationAgent(config, llm_service).score(body.document, framework_id)
        return scoring.model_dump(mode="json")
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error scoring document: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Scoring failed: {str(e)}")


@app.post("/refine")
def refine_document(
    body: RefineDocumentRequest,
    config: RefinementConfig = Depends(get_config),
    llm_service=Depends(get_llm_service),
):
    """Run a refinement session and return the session result"""
    try:
        session_config = config.model_copy(update=body.config_overrides())
        # model_copy skips validation
        session_config = RefinementConfig.model_validate(session_config.model_dump())
        orchestrator = create_orchestrator(session_config, llm_service)
        result = orchestrator.refine(body.document, body.request)
        return result.model_dump(mode="json")
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))
    except Exception as e:
        logger.error(f"Error refining document: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Refinement failed: {str(e)}")


@app.get("/")
def api_info():
    """API information"""
    return {
        "message": "Deck Refinement API",
        "version": __version__,
        "endpoints": {
            "health": "/health",
            "frameworks": "/frameworks",
            "recommend": "/frameworks/recommend",
            "score": "/score",
            "refine": "/refine",
        },
    }

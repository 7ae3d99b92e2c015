"""
Ranking API Routes

FastAPI routes for ranking a candidate pool, synchronously or as a
Server-Sent Events stream of per-stage statistics.
"""
import asyncio
import queue
import threading

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from literature_ranker.core.dependencies import get_ranking_pipeline
from literature_ranker.core.exceptions import InvalidInputError, PipelineCancelledError, RankingCoreError
from literature_ranker.core.logging import get_logger
from literature_ranker.core.rate_limit import limiter, RANKING_RUN_LIMIT, RANKING_STREAM_LIMIT
from literature_ranker.schemas.context import CancellationToken, QueryContext
from literature_ranker.schemas.events import STAGE_CONFIG, CompleteEvent, ErrorEvent, StageEvent
from literature_ranker.schemas.pipeline import PipelineResult, Stage
from literature_ranker.schemas.ranking import RankingRequest
from literature_ranker.services.ranking import RankingPipeline

logger = get_logger(__name__)

router = APIRouter(prefix="/api/ranking", tags=["ranking"])


def _build_context(
    payload: RankingRequest,
    pipeline: RankingPipeline,
    cancellation: CancellationToken = None
) -> QueryContext:
    """Fill the target band from the purpose's limits where the request leaves it open."""
    limits = pipeline.registry.get(payload.purpose).limits
    high = payload.max_results if payload.max_results is not None else limits.max
    low = payload.min_results if payload.min_results is not None else min(limits.min, high)
    return QueryContext.build(
        payload.query,
        payload.purpose,
        band=(low, high),
        target_domains=payload.target_domains,
        target_aspects=payload.target_aspects,
        excluded_domains=payload.excluded_domains,
        cancellation=cancellation,
        registry=pipeline.registry,
    )


@router.post("/run", response_model=PipelineResult)
@limiter.limit(RANKING_RUN_LIMIT)
def run_ranking(
    request: Request,
    payload: RankingRequest,
    pipeline: RankingPipeline = Depends(get_ranking_pipeline)
):
    """
    Rank a candidate pool and return the bounded result with stage statistics.
    """
    try:
        context = _build_context(payload, pipeline)
        return pipeline.run(payload.candidates, context)
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except PipelineCancelledError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RankingCoreError as e:
        logger.error(f"Ranking failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/stream")
@limiter.limit(RANKING_STREAM_LIMIT)
async def stream_ranking(
    request: Request,
    payload: RankingRequest,
    pipeline: RankingPipeline = Depends(get_ranking_pipeline)
):
    """
    Rank with streaming progress updates.
    Sends Server-Sent Events as each stage finishes.
    
    Event types:
    - stage: Statistics of one finished stage with progress percentage
    - result: The final PipelineResult
    - complete: Signal that streaming is done
    - error: Error if something fails
    """
    cancellation = CancellationToken()
    try:
        context = _build_context(payload, pipeline, cancellation)
        run = pipeline.start(payload.candidates, context)
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=str(e))
    
    stage_queue: queue.Queue = queue.Queue()
    outcome = {"result": None, "error": None, "stage": None}
    
    def run_pipeline():
        """Drive the run in a thread, forwarding stage events to the queue."""
        try:
            for stage_name, stats in run:
                stage = Stage(stage_name)
                config = STAGE_CONFIG[stage]
                stage_queue.put(StageEvent(
                    stage=stage,
                    label=config["label"],
                    statistics=stats,
                    progress_percent=config["progress"],
                ))
            outcome["result"] = run.result
        except PipelineCancelledError as e:
            logger.info(str(e))
            outcome["error"] = str(e)
            outcome["stage"] = _stage_of(e.stage)
        except Exception as e:
            logger.exception("Streaming ranking run failed")
            outcome["error"] = str(e)
        finally:
            stage_queue.put(None)
    
    async def event_generator():
        """Async generator that yields SSE events."""
        thread = threading.Thread(target=run_pipeline, daemon=True)
        thread.start()
        
        try:
            while True:
                try:
                    event = await asyncio.get_event_loop().run_in_executor(
                        None,
                        lambda: stage_queue.get(timeout=0.1)
                    )
                except queue.Empty:
                    continue
                
                if event is None:
                    break
                yield f"event: stage\ndata: {event.model_dump_json()}\n\n"
            
            thread.join(timeout=5.0)
            
            if outcome["error"]:
                yield f"event: error\ndata: {ErrorEvent(message=outcome['error'], stage=outcome['stage']).model_dump_json()}\n\n"
                return
            
            result = outcome["result"]
            yield f"event: result\ndata: {result.model_dump_json()}\n\n"
            yield f"event: complete\ndata: {CompleteEvent(returned=len(result.candidates)).model_dump_json()}\n\n"
        finally:
            # Client went away or stream ended; stop at the next stage boundary
            cancellation.cancel()
    
    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        }
    )


@router.get("/purposes")
async def list_purposes(pipeline: RankingPipeline = Depends(get_ranking_pipeline)):
    """
    List the purpose profiles (weights, thresholds, bonuses, limits).
    """
    return {
        purpose.value: profile.model_dump(mode="json")
        for purpose, profile in pipeline.registry.profiles.items()
    }


def _stage_of(name: str):
    # Cancellation inside the reranker reports "semantic:<tier>"
    try:
        return Stage(name.split(":", 1)[0])
    except ValueError:
        return None

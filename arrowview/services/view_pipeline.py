import asyncio
import logging
from typing import Callable, Optional

from arrowview.models.schemas import DirectedSegment
from arrowview.services.gemini_service import GeminiService, GenerationError
from arrowview.services.result_presenter import GenerationOutcome, ResultView, present
from arrowview.services.viewpoint_assembler import CaptureFn, ViewpointAssembler

logger = logging.getLogger(__name__)


class ViewPipeline:
    """
    Runs arrow -> viewpoint -> generation and keeps the single "current" result.

    Overlapping generations are allowed. Each issued request gets an increasing
    id and a result is applied only if no newer request was issued meanwhile.
    """

    def __init__(
        self,
        assembler: ViewpointAssembler,
        client: GeminiService,
        on_result: Optional[Callable[[ResultView], None]] = None,
    ):
        self.assembler = assembler
        self.client = client
        self.on_result = on_result
        self.latest_request_id = 0
        self.current: Optional[GenerationOutcome] = None

    @property
    def busy(self) -> bool:
        if self.latest_request_id == 0:
            return False
        return self.current is None or self.current.request_id != self.latest_request_id

    async def issue(self, segment: DirectedSegment, capture_fn: Optional[CaptureFn] = None) -> GenerationOutcome:
        self.latest_request_id += 1
        request_id = self.latest_request_id
        # assemble() may block on geocoding I/O
        request = await asyncio.to_thread(self.assembler.assemble, segment, capture_fn)

        try:
            result = await self.client.generate(request)
            outcome = GenerationOutcome(request_id=request_id, request=request, result=result)
        except GenerationError as e:
            outcome = GenerationOutcome(request_id=request_id, request=request, error=str(e))

        self.apply(outcome)
        return outcome

    def apply(self, outcome: GenerationOutcome) -> bool:
        """Make outcome current unless a newer request has been issued. Returns whether it was applied."""
        if outcome.request_id != self.latest_request_id:
            logger.info(
                f"Discarding stale result for request {outcome.request_id} "
                f"(latest is {self.latest_request_id})"
            )
            return False
        self.current = outcome
        if self.on_result:
            self.on_result(present(outcome))
        return True

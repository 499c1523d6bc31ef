import logging
import time

from part_research.config import Settings
from part_research.exceptions import (
    AllProvidersExhausted,
    ImageLoadError,
    MalformedResponse,
    ProviderCallFailed,
    ValidationFailed,
)
from part_research.schemas.research import (
    FailureWithFallback,
    ImageInput,
    ProviderAttemptResult,
    ProviderRequest,
    ResearchRequest,
    ResearchResult,
    UntrustedPayload,
)
from part_research.services.heuristic_extractor import build_stub
from part_research.services.image_service import ImageService
from part_research.services.normalizer import normalize_result, validate_required
from part_research.services.providers import ProviderDescriptor, build_providers
from part_research.services.request_builder import build_request
from part_research.services.response_parser import extract_json
from part_research.services.retry import retry_with_backoff

logger = logging.getLogger(__name__)


class ResearchEngine:
    """Resolve a part description or photo into a validated ResearchResult.

    Providers are tried one at a time in the configured order. Each call is
    retried with backoff; once a provider's retries are exhausted, or its
    output cannot be parsed or validated, the next provider is tried. When
    none are left a heuristic stub is returned, so `research` never raises.
    """

    def __init__(
        self,
        config: Settings,
        providers: dict[str, ProviderDescriptor] | None = None,
        image_service: ImageService | None = None,
    ):
        self.config = config
        self.providers = providers if providers is not None else build_providers(config)
        self.image_service = image_service or ImageService(config)

    def select_providers(self, has_image: bool) -> list[ProviderDescriptor]:
        names = self.config.image_providers if has_image else self.config.text_providers
        selected = []
        for name in names:
            descriptor = self.providers.get(name)
            if descriptor is None:
                logger.warning("Unknown provider %r in configuration", name)
                continue
            if has_image and not descriptor.supports_images:
                logger.warning("Provider %s cannot process images, skipping", name)
                continue
            selected.append(descriptor)
        return selected

    async def research(self, request: ResearchRequest) -> ResearchResult | FailureWithFallback:
        logger.info(
            "Research request: mode=%s image=%s description=%r",
            request.mode, request.has_image, (request.description or "")[:80],
        )

        image: ImageInput | None = None
        if request.has_image:
            try:
                image = self.image_service.load(request.image_ref)
            except ImageLoadError as exc:
                logger.warning("Image load failed: %s", exc)
                return self._fallback(request, None, [str(exc)], [])

        errors: list[str] = []
        tried: list[str] = []
        last_raw: str | None = None
        failed_before = False

        for descriptor in self.select_providers(image is not None):
            if not descriptor.is_configured():
                logger.info("Skipping %s: no credentials configured", descriptor.name)
                errors.append(f"{descriptor.name}: not configured")
                continue

            tried.append(descriptor.name)
            provider_request = build_request(
                request, image=image, web_search=descriptor.web_search, config=self.config
            )
            attempt = await self._attempt(descriptor, provider_request)
            if not attempt.success:
                errors.append(f"{descriptor.name}: {attempt.error}")
                failed_before = True
                continue

            last_raw = attempt.raw_text
            try:
                payload = UntrustedPayload(
                    extract_json(attempt.raw_text), source=descriptor.name, raw_text=attempt.raw_text
                )
                validate_required(payload)
                result = normalize_result(
                    payload.data,
                    provider=descriptor.name,
                    fallback=failed_before,
                    providers_tried=tried,
                    config=self.config,
                )
            except (MalformedResponse, ValidationFailed) as exc:
                logger.warning("%s returned unusable output: %s", descriptor.name, exc)
                errors.append(f"{descriptor.name}: {exc}")
                failed_before = True
                continue
            except ValueError as exc:
                # includes pydantic.ValidationError from ResearchResult
                logger.exception("Could not normalize output from %s", descriptor.name)
                errors.append(f"{descriptor.name}: {type(exc).__name__}: {exc}")
                failed_before = True
                continue

            logger.info(
                "Research completed via %s: name=%r images=%d models=%d confidence=%.2f",
                descriptor.name, result.name, len(result.image_urls),
                len(result.model_3d_urls), result.confidence,
            )
            return result

        return self._fallback(request, last_raw, errors, tried)

    async def find_part_images(self, part_name: str, manufacturer: str | None = None) -> list[str]:
        """Look up product image URLs for an already-identified part."""
        if manufacturer:
            query = f"{part_name} {manufacturer} product images datasheet"
        else:
            query = f"{part_name} electronic component product images"
        outcome = await self.research(ResearchRequest(description=query))
        if isinstance(outcome, FailureWithFallback):
            logger.warning("Image search failed for %r: %s", part_name, outcome.error)
            return []
        return outcome.image_urls

    async def _attempt(
        self, descriptor: ProviderDescriptor, provider_request: ProviderRequest
    ) -> ProviderAttemptResult:
        started = time.perf_counter()

        async def call() -> str:
            return await descriptor.client.call(
                provider_request.system,
                provider_request.content,
                provider_request.max_tokens,
                provider_request.temperature,
            )

        try:
            raw = await retry_with_backoff(
                call, max_retries=descriptor.max_retries, base_delay=descriptor.base_delay
            )
        except ProviderCallFailed as exc:
            error = str(exc)
        except Exception as exc:
            logger.exception("Unexpected error from provider %s", descriptor.name)
            error = f"{type(exc).__name__}: {exc}"
        else:
            return ProviderAttemptResult(
                provider=descriptor.name,
                raw_text=raw,
                latency=time.perf_counter() - started,
                success=True,
            )

        logger.warning("%s failed after %d attempts: %s", descriptor.name, descriptor.max_retries, error)
        return ProviderAttemptResult(
            provider=descriptor.name,
            error=error,
            latency=time.perf_counter() - started,
        )

    def _fallback(
        self,
        request: ResearchRequest,
        last_raw: str | None,
        errors: list[str],
        tried: list[str],
    ) -> FailureWithFallback:
        exhausted = AllProvidersExhausted(errors)
        logger.error("%s", exhausted)

        stub = build_stub(last_raw, request.description)
        stub["confidence"] = self.config.fallback_confidence_ceiling
        result = normalize_result(stub, heuristic=True, providers_tried=tried, config=self.config)
        return FailureWithFallback(error=str(exhausted), fallback=result)

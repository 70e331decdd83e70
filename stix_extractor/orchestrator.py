"""Fallback orchestrator: run provider stages in order until one finds something.

Each stage is the same small pipeline, bound to one provider:

    load_prompt → ProviderClient.complete → sanitize_response
      → recover_json → normalize_bundle

State machine (two providers by default, N in general)::

    TryPrimary ──non-empty──► DONE
        │ empty / error
        ▼
    TrySecondary ──non-empty──► DONE
        │ empty / error
        ▼
    DONE-WITH-EMPTY (fresh empty bundle)

"Error" covers everything a stage can throw: a missing credential, a
transport failure, a completion nothing could be recovered from. All of it
is treated like an empty result and the next provider gets its turn.
Stages run strictly one after another; the secondary is never called when
the primary produced objects.

extract_bundle() always returns a valid bundle. extract_with_report() also
returns what happened at each stage, for callers that need to tell "no
entities in this text" apart from "every provider failed".
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from stix_extractor.core.config import DEFAULT_PROVIDERS, ProviderSettings, RecoveryConfig
from stix_extractor.core.cost_tracker import ProviderUsage, UsageLedger
from stix_extractor.core.errors import (
    ErrorCategory,
    ErrorSeverity,
    ExtractionError,
    PipelineErrors,
    PromptNotFoundError,
    ProviderConfigError,
    ProviderRequestError,
    llm_api_error,
    llm_parse_error,
    provider_config_error,
    response_shape_error,
)
from stix_extractor.core.json_recovery import recover_json
from stix_extractor.core.llm_client import ProviderClient
from stix_extractor.core.normalizer import describe_shape, is_bundle_shaped, normalize_bundle
from stix_extractor.core.pipeline_logger import PipelineRun, get_logger
from stix_extractor.core.sanitizer import sanitize_response
from stix_extractor.prompts.stix_prompt import load_prompt
from stix_extractor.pydantic_models.stix import STIXBundle

ProgressCallback = Callable[[str, str], None]

STATUS_SUCCESS = "success"
STATUS_EMPTY = "empty"
STATUS_ERROR = "error"


@dataclass
class StageOutcome:
    """What one provider stage produced."""

    provider: str
    status: str  # success | empty | error
    object_count: int = 0
    recovery_strategy: str | None = None
    error: str | None = None
    usage: ProviderUsage | None = None  # None when no completion came back

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "status": self.status,
            "object_count": self.object_count,
            "recovery_strategy": self.recovery_strategy,
            "error": self.error,
            "usage": self.usage.to_dict() if self.usage else None,
        }


@dataclass
class ExtractionReport:
    """Bundle plus the per-stage trail that led to it."""

    bundle: STIXBundle
    stages: list[StageOutcome] = field(default_factory=list)
    provider: str | None = None  # Stage whose bundle was returned, None if empty
    errors: PipelineErrors = field(default_factory=PipelineErrors)
    log_file: Path | None = None

    @property
    def all_failed(self) -> bool:
        """True when every stage errored (as opposed to finding nothing)."""
        return bool(self.stages) and all(s.status == STATUS_ERROR for s in self.stages)

    @property
    def cost_usd(self) -> float:
        """Cost of every provider call this extraction made."""
        return sum(s.usage.cost_usd for s in self.stages if s.usage)

    def to_dict(self) -> dict:
        return {
            "bundle_id": self.bundle.id,
            "object_count": len(self.bundle.objects),
            "provider": self.provider,
            "stages": [s.to_dict() for s in self.stages],
            "cost_usd": round(self.cost_usd, 6),
            "errors": self.errors.to_dict(),
            "log_file": str(self.log_file) if self.log_file else None,
        }


class FallbackOrchestrator:
    """Runs the provider stages for one document at a time.

    Per-document state (log file, timers, errors) lives in the run, so one
    instance can serve concurrent extractions of different documents.
    """

    def __init__(
        self,
        providers: Sequence[ProviderSettings] | None = None,
        ledger: UsageLedger | None = None,
        on_progress: ProgressCallback | None = None,
        verbose: bool = False,
        log_dir: str | Path | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            providers: Provider stages in fallback order. Defaults to
                DEFAULT_PROVIDERS (primary, then secondary).
            ledger: Running usage totals across extractions. A fresh one if
                omitted.
            on_progress: Default ``(stage, message)`` callback, used when a
                call does not pass its own. Exceptions it raises are logged
                and ignored.
            verbose: If True, print detailed logs.
            log_dir: Directory for per-document log files.
        """
        self.providers = tuple(providers) if providers is not None else DEFAULT_PROVIDERS
        self.ledger = ledger if ledger is not None else UsageLedger()
        self.on_progress = on_progress
        self.log_dir = log_dir
        self.logger = get_logger(verbose=verbose)

    def _notify(self, callback: ProgressCallback | None, run: PipelineRun, stage: str, message: str) -> None:
        if callback is None:
            return
        try:
            callback(stage, message)
        except Exception as e:
            run.warning(f"Progress callback failed at {stage}", error=str(e))

    async def extract_bundle(
        self,
        text: str | None,
        label: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> STIXBundle:
        """Extract a STIX bundle from document text. Never raises."""
        report = await self.extract_with_report(text, label, on_progress=on_progress)
        return report.bundle

    async def extract_with_report(
        self,
        text: str | None,
        label: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ExtractionReport:
        """Extract a bundle and report what every stage did. Never raises.

        Args:
            text: Plain document text. None and "" are valid (the providers
                will usually find nothing).
            label: Human-readable document name, used in prompts and logs.
            on_progress: Progress callback for this call only. Falls back to
                the one given to the constructor.

        Returns:
            ExtractionReport. Its bundle is the first non-empty stage result,
            or a fresh empty bundle when no stage found anything.
        """
        label = label or "untitled"
        callback = on_progress or self.on_progress
        run = self.logger.start_pipeline(label, log_dir=self.log_dir)
        report = ExtractionReport(bundle=STIXBundle.empty(), log_file=run.log_file)

        try:
            self._notify(callback, run, "start", f"Extracting STIX from {label}")

            for index, provider in enumerate(self.providers):
                if index > 0:
                    previous = report.stages[-1]
                    run.milestone(
                        f"Falling back to {provider.name}",
                        previous=previous.provider,
                        reason=previous.error or previous.status,
                    )
                self._notify(callback, run, provider.name, f"Trying {provider.name}")

                bundle, outcome = await self._run_stage(provider, text, label, report.errors, run)
                report.stages.append(outcome)
                self.ledger.add(outcome.usage)

                if outcome.status == STATUS_SUCCESS:
                    report.bundle = bundle
                    report.provider = provider.name
                    break

            if report.provider is None and report.all_failed:
                report.errors.add(ExtractionError(
                    category=ErrorCategory.UNKNOWN,
                    severity=ErrorSeverity.CRITICAL,
                    message=f"All {len(report.stages)} providers failed, returning empty bundle",
                    stage="fallback",
                    document_label=label,
                ))

            self._notify(callback, run, "done", f"Extracted {len(report.bundle.objects)} objects")
        finally:
            run.end_pipeline(
                success=not report.all_failed,
                stats={
                    "provider": report.provider or "none",
                    "objects": len(report.bundle.objects),
                    "types": report.bundle.type_counts(),
                    "errors": report.errors.error_count,
                    "cost": f"${report.cost_usd:.4f}",
                },
            )
        return report

    async def _run_stage(
        self,
        provider: ProviderSettings,
        text: str | None,
        label: str,
        errors: PipelineErrors,
        run: PipelineRun,
    ) -> tuple[STIXBundle, StageOutcome]:
        """Run one provider stage. Any failure becomes an ``error`` outcome."""
        run.start_phase(provider.name, model=provider.model)

        try:
            prompt = load_prompt(provider.prompt_flavor, text, label)
            client = ProviderClient(provider)
            response = await client.complete(prompt)
        except (ProviderConfigError, PromptNotFoundError) as e:
            errors.add(provider_config_error(str(e), stage=provider.name, document_label=label, original=e))
            return self._failed(provider, run, e)
        except ProviderRequestError as e:
            errors.add(llm_api_error(str(e), stage=provider.name, document_label=label, original=e))
            return self._failed(provider, run, e)
        except Exception as e:
            errors.add(ExtractionError(
                category=ErrorCategory.UNKNOWN,
                severity=ErrorSeverity.ERROR,
                message=f"{type(e).__name__}: {e}",
                stage=provider.name,
                document_label=label,
                original_error=e,
            ))
            return self._failed(provider, run, e)

        usage = response.usage
        try:
            payload = sanitize_response(response.content)
            recovered = recover_json(payload)
            if not recovered.ok:
                errors.add(llm_parse_error(
                    f"Unrecoverable JSON from {provider.name}: {recovered.error}",
                    stage=provider.name,
                    document_label=label,
                    raw_response=response.content,
                ))
                run.debug(f"Unparseable {provider.name} output", preview=payload[:RecoveryConfig.LOG_PREVIEW_CHARS])
                return self._failed(provider, run, recovered.error or "unrecoverable JSON", usage)

            if not (is_bundle_shaped(recovered.data) or isinstance(recovered.data, list)):
                errors.add(response_shape_error(
                    f"{provider.name} returned {describe_shape(recovered.data)}, expected bundle or array",
                    stage=provider.name,
                    document_label=label,
                    shape=describe_shape(recovered.data),
                ))

            bundle = normalize_bundle(recovered.data)
        except Exception as e:
            errors.add(ExtractionError(
                category=ErrorCategory.LLM_PARSE,
                severity=ErrorSeverity.ERROR,
                message=f"{type(e).__name__}: {e}",
                stage=provider.name,
                document_label=label,
                original_error=e,
            ))
            return self._failed(provider, run, e, usage)

        outcome = StageOutcome(
            provider=provider.name,
            status=STATUS_EMPTY if bundle.is_empty else STATUS_SUCCESS,
            object_count=len(bundle.objects),
            recovery_strategy=recovered.strategy.value,
            usage=usage,
        )
        if recovered.fragments_dropped:
            run.warning(f"{provider.name}: dropped {recovered.fragments_dropped} corrupt fragments")
        run.phase_result(
            provider.name,
            "No objects found" if bundle.is_empty else f"{len(bundle.objects)} objects",
            recovery=outcome.recovery_strategy,
        )
        return bundle, outcome

    def _failed(
        self,
        provider: ProviderSettings,
        run: PipelineRun,
        error: Exception | str,
        usage: ProviderUsage | None = None,
    ) -> tuple[STIXBundle, StageOutcome]:
        message = str(error)
        if isinstance(error, Exception):
            run.error(f"{provider.name} stage failed", exc=error)
        else:
            run.error(f"{provider.name} stage failed: {message}")
        outcome = StageOutcome(provider=provider.name, status=STATUS_ERROR, error=message, usage=usage)
        return STIXBundle.empty(), outcome


async def extract_bundle(
    document_text: str | None,
    document_label: str | None,
    providers: Sequence[ProviderSettings] | None = None,
    on_progress: ProgressCallback | None = None,
) -> STIXBundle:
    """Extract a STIX bundle with provider fallback.

    Convenience wrapper around FallbackOrchestrator for one-off calls.
    Always returns a bundle; the worst case is a fresh empty one.
    """
    orchestrator = FallbackOrchestrator(providers=providers)
    return await orchestrator.extract_bundle(document_text, document_label, on_progress=on_progress)

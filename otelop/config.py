"""The operator's runtime configuration."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from typing import Protocol

from otelop import version as _version
from otelop.autodetect import AutoDetectError, Platform

DEFAULT_AUTO_DETECT_FREQUENCY = 5.0
DEFAULT_COLLECTOR_CONFIG_MAP_ENTRY = "collector.yaml"
DEFAULT_TARGET_ALLOCATOR_CONFIG_MAP_ENTRY = "targetallocator.yaml"


class PlatformDetector(Protocol):
    def platform(self) -> Platform: ...


class Config:
    """Static operator configuration plus the traits detected from the cluster."""

    def __init__(
        self,
        *,
        auto_detect: PlatformDetector | None = None,
        auto_detect_frequency: float = DEFAULT_AUTO_DETECT_FREQUENCY,
        collector_image: str = "",
        collector_config_map_entry: str = DEFAULT_COLLECTOR_CONFIG_MAP_ENTRY,
        target_allocator_image: str = "",
        target_allocator_config_map_entry: str = DEFAULT_TARGET_ALLOCATOR_CONFIG_MAP_ENTRY,
        platform: Platform = Platform.UNKNOWN,
        version: _version.Version | None = None,
        on_change: Iterable[Callable[[], None]] = (),
        auto_instrumentation_java_image: str = "",
        auto_instrumentation_nodejs_image: str = "",
        auto_instrumentation_python_image: str = "",
        logger: logging.Logger | None = None,
    ) -> None:
        self._auto_detect = auto_detect
        self._frequency = auto_detect_frequency
        self._collector_image = collector_image
        self._collector_config_map_entry = collector_config_map_entry
        self._target_allocator_image = target_allocator_image
        self._target_allocator_config_map_entry = target_allocator_config_map_entry
        self._platform = platform
        self._version = version if version is not None else _version.get()
        self._on_change = list(on_change)
        self._java_image = auto_instrumentation_java_image
        self._nodejs_image = auto_instrumentation_nodejs_image
        self._python_image = auto_instrumentation_python_image
        self._logger = logger or logging.getLogger("otelop.config")
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._worker: threading.Thread | None = None

    def detect(self) -> None:
        """Detect the platform once; notify callbacks when it changed."""
        self._logger.debug("auto-detecting the configuration based on the environment")
        changed = False
        with self._lock:
            if self._platform is Platform.UNKNOWN:
                if self._auto_detect is None:
                    raise AutoDetectError("no auto-detection mechanism configured")
                detected = self._auto_detect.platform()
                if detected is not self._platform:
                    self._logger.debug("platform detected: %s", detected.value)
                    self._platform = detected
                    changed = True

        if changed:
            for callback in self._on_change:
                try:
                    callback()
                except Exception:
                    # The detection itself worked; a failing listener is only reported.
                    self._logger.exception("configuration change notification failed for callback")

    def start_auto_detect(self) -> None:
        """Run detection now, then keep running it periodically in the background."""
        try:
            self.detect()
        finally:
            self._start_worker()

    def _start_worker(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._stopped.clear()
        self._worker = threading.Thread(
            target=self._periodic_detect, name="otelop-autodetect", daemon=True
        )
        self._worker.start()

    def _periodic_detect(self) -> None:
        while not self._stopped.wait(self._frequency):
            try:
                self.detect()
            except Exception as err:
                self._logger.info("auto-detection failed: %s", err)

    def stop(self) -> None:
        """Stop the periodic detection, if running."""
        self._stopped.set()
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.join()

    @property
    def collector_image(self) -> str:
        return self._collector_image

    @property
    def collector_config_map_entry(self) -> str:
        return self._collector_config_map_entry

    @property
    def target_allocator_image(self) -> str:
        return self._target_allocator_image

    @property
    def target_allocator_config_map_entry(self) -> str:
        return self._target_allocator_config_map_entry

    @property
    def platform(self) -> Platform:
        with self._lock:
            return self._platform

    @property
    def version(self) -> _version.Version:
        return self._version

    @property
    def auto_detect_frequency(self) -> float:
        return self._frequency

    @property
    def auto_instrumentation_java_image(self) -> str:
        return self._java_image

    @property
    def auto_instrumentation_nodejs_image(self) -> str:
        return self._nodejs_image

    @property
    def auto_instrumentation_python_image(self) -> str:
        return self._python_image
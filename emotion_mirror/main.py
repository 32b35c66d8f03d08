"""Emotion mirror entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging

log = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Emotion Mirror inference engine")
    p.add_argument("--config", default=None, help="YAML config file path")
    p.add_argument(
        "--source",
        choices=("synthetic", "classifier"),
        default=None,
        help="Signal source strategy (default: from config)",
    )
    p.add_argument(
        "--classifier-url", default=None, help="External classifier base URL"
    )
    p.add_argument("--seed", type=int, default=None, help="Seed for synthetic jitter")
    p.add_argument("--http-port", type=int, default=None, help="HTTP server port")
    p.add_argument("--log-level", default="INFO", help="Log level")
    return p.parse_args(argv)


async def async_main(args: argparse.Namespace) -> None:
    import uvicorn

    from emotion_mirror.api.http_server import create_app
    from emotion_mirror.config import load_config
    from emotion_mirror.core.analytics import EmotionAnalytics
    from emotion_mirror.core.engine import EmotionEngine
    from emotion_mirror.devices.classifier_client import ClassifierClient

    cfg = load_config(args.config)

    # Apply CLI overrides
    if args.source:
        cfg.engine.signal_source = args.source
    if args.seed is not None:
        cfg.engine.seed = args.seed
    if args.classifier_url:
        cfg.classifier.base_url = args.classifier_url
    if args.http_port:
        cfg.network.http_port = args.http_port

    classifier: ClassifierClient | None = None
    engine: EmotionEngine | None = None

    try:
        # ── External classifier ──────────────────────────────────
        if cfg.engine.signal_source == "classifier" and cfg.classifier.base_url:
            classifier = ClassifierClient(
                cfg.classifier.base_url, timeout_s=cfg.classifier.request_timeout_s
            )
            await classifier.start()
            if not await classifier.health_check():
                log.warning(
                    "classifier at %s not healthy, ticks will fall back to synthetic",
                    cfg.classifier.base_url,
                )

        # ── Engine + consumers ───────────────────────────────────
        engine = EmotionEngine(classify=classifier.classify if classifier else None)
        analytics = EmotionAnalytics(window=cfg.engine.history_capacity)
        engine.on_emotion_update(analytics.record)

        # ── HTTP server ──────────────────────────────────────────
        app = create_app(engine, cfg.engine, analytics)
        http_config = uvicorn.Config(
            app,
            host=cfg.network.host,
            port=cfg.network.http_port,
            log_level="warning",
        )
        http_server = uvicorn.Server(http_config)

        await engine.activate(cfg.engine)

        log.info(
            "emotion mirror running (source=%s, http=%s:%d)",
            cfg.engine.signal_source,
            cfg.network.host,
            cfg.network.http_port,
        )
        await http_server.serve()

    finally:
        log.info("shutting down...")
        if engine is not None:
            await engine.deactivate()
        if classifier is not None:
            await classifier.stop()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-5s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    try:
        asyncio.run(async_main(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()

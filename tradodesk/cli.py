from __future__ import annotations

import argparse
import asyncio
import sys
import time
from contextlib import aclosing
from dataclasses import replace
from pathlib import Path

from tradodesk.config import ConfigError, load_config
from tradodesk.config.model import AppConfig
from tradodesk.core.types import ModelLane
from tradodesk.llm.client import LlmClient
from tradodesk.llm.schemas import Usage
from tradodesk.llm.transport import FakeTransport
from tradodesk.llm.usage import make_usage_record
from tradodesk.observability import bind_correlation_id, configure_logging, get_logger, new_correlation_id


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="tradodesk LLM client")
    p.add_argument("--config", default="configs/app.yaml", help="YAML config path")
    p.add_argument("--log-level", default=None, help="Override the configured log level")
    p.add_argument("--text", default="Wie ist die Marktlage heute?", help="Prompt text")
    p.add_argument("--lane", choices=[lane.value for lane in ModelLane], default=ModelLane.FAST.value)
    p.add_argument("--image", default=None, help="Optional chart screenshot (PNG/JPEG) to attach")
    p.add_argument("--no-stream", action="store_true", help="Use a single-shot request instead of streaming")
    p.add_argument("--fake", action="store_true", help="Use the offline FakeTransport")
    return p


async def _run(cfg: AppConfig, args: argparse.Namespace) -> int:
    log = get_logger("tradodesk.cli")
    lane = ModelLane(args.lane)
    image: bytes | None = None
    if args.image:
        try:
            image = Path(args.image).read_bytes()
        except OSError as e:
            log.error("image_read_failed", path=args.image, error=str(e))
            print(f"Fehler: Bild konnte nicht gelesen werden: {args.image} ({e.strerror or e})", file=sys.stderr)
            return 1

    if args.fake:
        # Offline stub: allow running without a real key.
        llm_cfg = replace(cfg.llm, api_key=cfg.llm.api_key or "k_fake")
        client = LlmClient.from_config(llm_cfg, transport=FakeTransport())
    else:
        client = LlmClient.from_config(cfg.llm)

    cid = new_correlation_id()
    model = client.model_for(lane)
    started = time.perf_counter()
    usage: Usage | None = None
    exit_code = 0

    with bind_correlation_id(cid):
        if args.no_stream:
            result = await client.generate(args.text, lane, image=image, correlation_id=cid)
            if result.ok:
                print(result.value.text or "")
                for call in result.value.function_calls or []:
                    print(f"[function_call] {call.name} {call.args or {}}")
                usage = result.value.usage
            else:
                print(f"Fehler: {result.error.message} ({result.error.suggested_action})", file=sys.stderr)
                exit_code = 1
        else:
            async with aclosing(client.stream(args.text, lane, image=image, correlation_id=cid)) as results:
                async for result in results:
                    if not result.ok:
                        print(f"\n[SYSTEM FEHLER]: {result.error.message}", file=sys.stderr)
                        exit_code = 1
                        break
                    if result.value.text:
                        print(result.value.text, end="", flush=True)
                    if result.value.usage is not None:
                        usage = result.value.usage
            print()

        if usage is not None:
            record = make_usage_record(
                model=model,
                lane=lane,
                usage=usage,
                latency_ms=(time.perf_counter() - started) * 1000,
                pricing=cfg.pricing,
            )
            log.info("usage_record", correlation_id=cid, usage=record.model_dump())

    return exit_code


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        configure_logging(level=args.log_level or "INFO")
        get_logger("tradodesk.cli").error("config_load_failed", error=str(e))
        return 2

    configure_logging(level=args.log_level or cfg.logging.level, file=cfg.logging.file)
    return asyncio.run(_run(cfg, args))

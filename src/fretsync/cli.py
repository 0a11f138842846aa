from __future__ import annotations
import argparse, logging, sys
from pathlib import Path
from typing import List, Optional
import yaml

from .config import AppConfig, load_init_config
from .codec.config_codec import decode, decode_presets, encode_full, encode_instrument, encode_theme
from .domain.styles import StyleRegistry
from .engine.instance import FretboardInstance
from .engine.presets import PresetCatalog
from .engine.registry import FretboardRegistry
from .errors import ConfigParseError
from .render.preview import save_preview

log = logging.getLogger("fretsync")


def _build() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="fretsync",
        description="Fretboard diagram config export/import tool"
    )
    p.add_argument("--app-config", default="config/default.yaml", help="앱 설정 yaml")
    sub = p.add_subparsers(dest="cmd", required=True)

    # --- export: 초기 설정 yaml -> Fretboard.init(...) 코드 ---
    e = sub.add_parser("export", help="전체 설정 코드 출력")
    e.add_argument("--config", required=True, help="초기 설정 yaml (settingsGroupA/B/C)")
    e.add_argument("--presets", default=None, help="테마/악기 프리셋 yaml")
    e.add_argument("--target", default="fretboard_1", help="렌더 타깃 id")
    e.add_argument("--groups", default="ABC", help="포함할 그룹 (예: AB)")
    e.add_argument("--all-defaults", action="store_true", help="스타일 기본값까지 모두 포함")

    # --- import: 코드 -> yaml ---
    i = sub.add_parser("import", help="export 코드를 읽어 yaml 로 출력")
    i.add_argument("--code", required=True, help="export 코드 파일 (- 는 stdin)")
    i.add_argument("--save", default=None, help="결과 yaml 저장 경로")
    i.add_argument("--presets", action="store_true", help="themes:/instruments: 형식으로 읽기")

    # --- render: 미리보기 PNG ---
    r = sub.add_parser("render", help="다이어그램 미리보기 이미지")
    r.add_argument("--config", required=True, help="초기 설정 yaml")
    r.add_argument("--presets", default=None, help="테마/악기 프리셋 yaml")
    r.add_argument("--out", required=True, help="PNG 경로")
    r.add_argument("--width", type=int, default=None)
    r.add_argument("--height", type=int, default=None)

    # --- theme-export / instrument-export ---
    for name, help_text in (("theme-export", "현재 Group B 를 테마 코드로"),
                            ("instrument-export", "현재 튜닝/줄 수를 악기 코드로")):
        t = sub.add_parser(name, help=help_text)
        t.add_argument("--config", required=True, help="초기 설정 yaml")
        t.add_argument("--presets", default=None, help="테마/악기 프리셋 yaml")
        t.add_argument("--name", required=True, help="프리셋 이름 (예: guitarEbony)")
        t.add_argument("--label", default=None, help="표시 이름. 없으면 이름에서 만든다")

    return p


def _init_instance(args, cfg: AppConfig, target: str = "fretboard_1") -> FretboardInstance:
    # --presets 가 없으면 앱 설정의 presets.path (파일이 있을 때만)
    path = args.presets or cfg.presets_path
    catalog = PresetCatalog.from_yaml(path) if path and Path(path).exists() else None
    reg = FretboardRegistry(StyleRegistry(), viewport_height=cfg.viewport_height)
    return reg.init(target, load_init_config(args.config), catalog)


def _read_code(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def main(argv: Optional[List[str]] = None) -> int:
    args = _build().parse_args(argv)
    cfg = AppConfig.from_yaml(args.app_config)

    logging.basicConfig(level=getattr(logging, cfg.log_level, logging.INFO))

    if args.cmd == "export":
        inst = _init_instance(args, cfg, args.target)
        print(encode_full(inst.snapshot(), inst.target_id, include=args.groups,
                          include_all_defaults=args.all_defaults))
        return 0

    if args.cmd == "import":
        try:
            text = _read_code(args.code)
            if args.presets:
                kind, presets = decode_presets(text)
                data = {kind: presets}
            else:
                data = decode(text).to_config()
        except ConfigParseError as e:
            log.error("import failed: %s", e)
            return 2
        dumped = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
        if args.save:
            Path(args.save).write_text(dumped, encoding="utf-8")
            log.info("saved %s", args.save)
        else:
            print(dumped, end="")
        return 0

    if args.cmd == "render":
        inst = _init_instance(args, cfg)
        save_preview(inst, args.out,
                     width=args.width or cfg.render_width,
                     height=args.height or cfg.render_height)
        return 0

    if args.cmd == "theme-export":
        inst = _init_instance(args, cfg)
        print(encode_theme(inst.snapshot(), args.name, args.label))
        return 0

    if args.cmd == "instrument-export":
        inst = _init_instance(args, cfg)
        print(encode_instrument(inst.snapshot(), args.name, args.label))
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())

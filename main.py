#!/usr/bin/env python3
"""
Banner generator — Rich CLI entry point.

Usage:
    python main.py                                  # Show help
    python main.py generate -t "春の大感謝セール" -p profile.json
    python main.py suggest --tenant demo -t "夏の新作" -n 3
    python main.py pick --tenant demo --session <id> --choice <id>
    python main.py ingest-ctr ctr.csv --tenant demo
    python main.py feedback --tenant demo larger_text
    python main.py check "No.1 の保冷力" --evidence "2024年 自社調べ"
    python main.py presets
"""

from cli.app import app

if __name__ == "__main__":
    app()

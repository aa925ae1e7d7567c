#!/usr/bin/env python3
"""
Standalone example of context-pruner usage.

Run from this directory:
    python example.py
"""

import asyncio
from datetime import datetime, timedelta
from pathlib import Path
import sys

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from context_pruner import CharacterProfile, Message, PruningConfig, SessionRegistry


TURNS = [
    ("system", None, "你是小美，一个喜欢音乐和旅行的女孩。"),
    ("user", None, "今天天气很好，我们去公园散步吧"),
    ("assistant", "xiaomei", "好呀！公园里的花都开了，很漂亮"),
    ("user", None, "最近工作压力很大，感觉很累"),
    ("assistant", "xiaomei", "辛苦了…要不要听听音乐放松一下？"),
    ("user", None, "@小美 你最喜欢什么音乐？"),
    ("assistant", "xiaomei", "我最喜欢爵士乐，尤其是钢琴和萨克斯"),
    ("user", None, "爵士乐很有趣！周末有一场爵士音乐会"),
    ("assistant", "xiaomei", "真的吗？我们一起去音乐会吧！"),
    ("user", None, "好的，我去买音乐会的票"),
]


def build_history():
    start = datetime(2024, 5, 1, 9, 0)
    return [
        Message(
            id=f"msg-{i}",
            role=role,
            text=text,
            timestamp=start + timedelta(minutes=10 * i),
            character_id=owner,
        )
        for i, (role, owner, text) in enumerate(TURNS)
    ]


async def main():
    xiaomei = CharacterProfile(
        id="xiaomei",
        name="小美",
        personality="开朗 活泼",
        background="喜欢音乐和旅行",
        interests=["音乐", "旅行", "爵士"],
    )
    history = build_history()

    registry = SessionRegistry(PruningConfig(max_tokens=80, min_retain_ratio=0.3))
    session = registry.get("demo")

    print("=== context-pruner Example ===\n")
    print(f"History: {len(history)} messages, "
          f"{sum(session.pruner.estimate_tokens(m.text) for m in history)} tokens\n")

    result = await session.prune_context(history, character=xiaomei)

    print(f"Strategy: {result.strategy}")
    print(f"Kept {len(result.pruned_messages)} messages, "
          f"{result.retained_tokens}/{result.total_tokens} tokens")
    if result.metadata.topic_keywords:
        print(f"Topic: {', '.join(result.metadata.topic_keywords)}")

    scores = {s.message_id: s for s in result.importance_scores}
    print("\n--- Kept ---")
    for m in result.pruned_messages:
        s = scores.get(m.id)
        print(f"  {s.final_score if s else 0:.3f}  [{m.role}] {m.text}")

    print("\n--- Removed ---")
    for m in result.removed_messages:
        s = scores.get(m.id)
        print(f"  {s.final_score if s else 0:.3f}  [{m.role}] {m.text}")

    print("\nSession stats:")
    for k, v in session.get_stats().items():
        print(f"  {k}: {v}")

    print("\n=== Done ===")


if __name__ == "__main__":
    asyncio.run(main())

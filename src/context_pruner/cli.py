#!/usr/bin/env python3
"""
Command-line interface for context-pruner.

Usage:
    context-pruner prune history.json --character alice.json -b 2000
    context-pruner keywords "我今天很开心，想去公园散步"
    context-pruner topics history.json
    context-pruner init
"""

import argparse
import json
import sys
from pathlib import Path

from .config import PruningConfig
from .errors import ConfigError
from .pruner import ContextPruner
from .segmenter import TextSegmenter
from .topic import TopicRelevanceAnalyzer
from .types import CharacterProfile, Message


def _load_json(path: str):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_messages(path: str):
    """Read a message list (or {"messages": [...]}) from a JSON file."""
    data = _load_json(path)
    if isinstance(data, dict):
        data = data.get("messages", [])
    return [Message.from_dict(m) for m in data]


def cmd_prune(args):
    """Prune a conversation history."""
    config = args.pruning_config
    if args.budget is not None:
        config = config.replace(max_tokens=args.budget)

    messages = load_messages(args.history)
    character = None
    if args.character:
        character = CharacterProfile.from_dict(_load_json(args.character))

    pruner = ContextPruner(config)
    result = pruner.prune(messages, character=character, current_topic=args.topic)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    print(f"Strategy: {result.strategy}" + (
        f" ({result.metadata.fallback_reason})" if result.metadata.fallback_reason else ""
    ))
    print(f"Messages: {len(result.pruned_messages)} kept, {len(result.removed_messages)} removed")
    print(f"Tokens: {result.retained_tokens}/{result.total_tokens} "
          f"(budget {config.max_tokens}, {result.retain_ratio * 100:.1f}% retained)")
    if result.metadata.topic_keywords:
        print(f"Topic: {', '.join(result.metadata.topic_keywords)}")
    if result.metadata.forced_inclusions:
        print(f"Forced by retention floor: {result.metadata.forced_inclusions}")
    print(f"Time: {result.processing_time:.1f}ms")
    print()

    scores = {s.message_id: s.final_score for s in result.importance_scores}
    for m in result.pruned_messages:
        score = f"{scores[m.id]:.3f}" if m.id in scores else "  -  "
        print(f"  {m.id:<12} {m.role:<10} {score}  {m.text[:60]}")


def cmd_keywords(args):
    """Extract keywords from text."""
    segmenter = TextSegmenter()
    keywords = segmenter.extract_keywords(" ".join(args.text), args.limit)
    if not keywords:
        print("No keywords found.")
        return
    print(f"{'Keyword':<20} {'Freq':>5} {'Score':>8}")
    print("-" * 35)
    for kw in keywords:
        print(f"{kw.term:<20} {kw.frequency:>5} {kw.score:>8.3f}")


def cmd_topics(args):
    """Identify topics in a conversation history."""
    config = args.pruning_config
    messages = load_messages(args.history)
    analyzer = TopicRelevanceAnalyzer(config.clustering_topic())
    topics = analyzer.identify_topics(messages[-config.topic_window:], args.limit)
    if not topics:
        print("No topics found.")
        return
    for t in topics:
        print(f"[{t.id}] weight={t.weight:.3f} messages={len(t.message_ids)}")
        print(f"  {', '.join(t.keywords)}")

    transition = analyzer.detect_topic_transition(messages)
    if transition:
        print(f"\nTransition at message {transition.transition_point} "
              f"(confidence {transition.confidence:.2f}): "
              f"{', '.join(transition.trigger_keywords)}")


def cmd_init(args):
    """Write a default config file."""
    config_path = Path(args.output or "context-pruner.yaml")

    if config_path.exists() and not args.force:
        print(f"Config already exists: {config_path}")
        print("Use --force to overwrite.")
        return

    PruningConfig().save(str(config_path))
    print(f"✓ Created config: {config_path}")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Token-budgeted context pruning for chat histories",
        prog="context-pruner"
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to config file (default: context-pruner.yaml if present)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # prune
    p_prune = subparsers.add_parser("prune", help="Prune a JSON message history")
    p_prune.add_argument("history", help="JSON file with a list of messages")
    p_prune.add_argument("--character", help="JSON file with the character profile")
    p_prune.add_argument("--topic", help="Current topic hint")
    p_prune.add_argument("-b", "--budget", type=int, help="Token budget (overrides config)")
    p_prune.add_argument("--json", action="store_true", help="Output full result as JSON")
    p_prune.set_defaults(func=cmd_prune)

    # keywords
    p_keywords = subparsers.add_parser("keywords", help="Extract keywords from text")
    p_keywords.add_argument("text", nargs="+", help="Text to analyze")
    p_keywords.add_argument("-n", "--limit", type=int, default=10, help="Max keywords")
    p_keywords.set_defaults(func=cmd_keywords)

    # topics
    p_topics = subparsers.add_parser("topics", help="Identify topics in a history")
    p_topics.add_argument("history", help="JSON file with a list of messages")
    p_topics.add_argument("-n", "--limit", type=int, default=5, help="Max topics")
    p_topics.set_defaults(func=cmd_topics)

    # init
    p_init = subparsers.add_parser("init", help="Write a default config file")
    p_init.add_argument("-o", "--output", help="Config file path")
    p_init.add_argument("-f", "--force", action="store_true", help="Overwrite existing")
    p_init.set_defaults(func=cmd_init)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.pruning_config = PruningConfig.load(args.config)
        args.func(args)
    except ConfigError as e:
        print(f"Config error: {e}")
        sys.exit(1)
    except FileNotFoundError as e:
        print(f"File not found: {e.filename}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nAborted.")
        sys.exit(1)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""Script to load text files and FAQ files into a tenant's knowledge base.

Entries are created through the running API, so this works against any
storage backend.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import httpx


def split_paragraphs(text: str, max_chars: int = 2000) -> list[str]:
    """Group blank-line separated paragraphs into entries of at most max_chars."""
    entries: list[str] = []
    current = ""

    for paragraph in (p.strip() for p in text.split("\n\n")):
        if not paragraph:
            continue
        if current and len(current) + len(paragraph) + 2 > max_chars:
            entries.append(current)
            current = paragraph
        else:
            current = f"{current}\n\n{paragraph}" if current else paragraph

    if current:
        entries.append(current)
    return entries


async def ingest_file(
    client: httpx.AsyncClient,
    file_path: Path,
    max_chars: int = 2000,
) -> int:
    """Ingest a text file as free-text entries."""
    print(f"Processing: {file_path}")

    content = file_path.read_text(encoding="utf-8")
    entries = split_paragraphs(content, max_chars=max_chars)

    if not entries:
        print("  No content to ingest")
        return 0

    for entry in entries:
        response = await client.post("/api/knowledge-base", json={"type": "text", "content": entry})
        response.raise_for_status()

    print(f"  Ingested {len(entries)} entries")
    return len(entries)


async def ingest_json_faqs(client: httpx.AsyncClient, file_path: Path) -> int:
    """Ingest FAQ-style JSON file as Q&A entries.

    Expected format:
    [
        {"question": "...", "answer": "..."},
        ...
    ]
    """
    print(f"Processing FAQs: {file_path}")

    with open(file_path, "r", encoding="utf-8") as f:
        faqs = json.load(f)

    count = 0
    for faq in faqs:
        question = faq.get("question", "")
        answer = faq.get("answer", "")
        if not (question and answer):
            continue
        response = await client.post(
            "/api/knowledge-base",
            json={"type": "qa", "question": question, "answer": answer},
        )
        response.raise_for_status()
        count += 1

    print(f"  Ingested {count} FAQs")
    return count


async def main():
    parser = argparse.ArgumentParser(description="Ingest documents into knowledge base")
    parser.add_argument("tenant_id", help="Tenant ID")
    parser.add_argument("path", help="File or directory path to ingest")
    parser.add_argument("--api-url", default="http://localhost:8000", help="Chatly API base URL")
    parser.add_argument("--max-chars", type=int, default=2000, help="Maximum characters per entry")
    parser.add_argument("--extensions", nargs="+", default=[".txt", ".md"], help="File extensions to process")

    args = parser.parse_args()

    path = Path(args.path)

    if not path.exists():
        print(f"Error: Path does not exist: {path}")
        sys.exit(1)

    total = 0
    async with httpx.AsyncClient(
        base_url=args.api_url,
        headers={"X-Tenant-ID": args.tenant_id},
        timeout=30.0,
    ) as client:
        if path.is_file():
            if path.suffix == ".json":
                total = await ingest_json_faqs(client, path)
            else:
                total = await ingest_file(client, path, args.max_chars)
        else:
            for ext in args.extensions:
                for file_path in path.rglob(f"*{ext}"):
                    total += await ingest_file(client, file_path, args.max_chars)

            for file_path in path.rglob("*.json"):
                total += await ingest_json_faqs(client, file_path)

    print(f"\nTotal entries ingested: {total}")


if __name__ == "__main__":
    asyncio.run(main())

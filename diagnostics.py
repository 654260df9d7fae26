"""
Diagnostic: run parsing + extraction only (no network) over saved HTML pages.
Reports what structured data and heuristics each recovered, the merged
record, and whether the page would be accepted as a product.
"""

import argparse
from pathlib import Path

from extractor import extract_fallback_meta, extract_structured_product, merge_records
from hydrator import build_product
from models import ExtractedRecord, SearchTarget, SkipReason
from parser import parse_html

DATA_DIR = Path(__file__).parent / "data"
FIELDS = ["name", "description", "images", "price", "currency", "url"]


def _summarize(value) -> str | None:
    if value is None or value == "" or value == []:
        return None
    if isinstance(value, list):
        if len(value) <= 3:
            return str(value)
        return f"{len(value)} items: {value[:3]} + {len(value) - 3} more"
    text = str(value)
    return text[:150] + ("..." if len(text) > 150 else "")


def diagnose_file(filepath: Path, page_url: str | None = None) -> dict:
    html = filepath.read_text(encoding="utf-8")
    url = page_url or f"https://example.com/{filepath.stem}"
    parsed = parse_html(html)

    parser_stats = {
        "json_ld_blocks": len(parsed.json_ld),
        "og_tags": sorted(parsed.og_tags),
        "itemprops": sorted(parsed.itemprops),
        "title": parsed.title,
    }

    structured = extract_structured_product(parsed, url)
    fallback = extract_fallback_meta(parsed, url)
    merged = merge_records(structured, fallback)
    decision = build_product(SearchTarget(page_url=url), merged)

    report = {
        "file": filepath.name,
        "url": url,
        "parser": parser_stats,
        "sources": {},
        "accepted": not isinstance(decision, SkipReason),
        "skip_reason": decision.value if isinstance(decision, SkipReason) else None,
    }

    sources: list[tuple[str, ExtractedRecord | None]] = [
        ("structured", structured),
        ("fallback", fallback),
        ("merged", merged),
    ]
    for label, record in sources:
        if record is None:
            report["sources"][label] = None
            continue
        report["sources"][label] = {f: _summarize(getattr(record, f)) for f in FIELDS}
        report["sources"][label]["is_product"] = record.is_product

    return report


def main():
    parser = argparse.ArgumentParser(description="Inspect extraction on saved product pages.")
    parser.add_argument("files", nargs="*", type=Path, help=f"HTML files (default: {DATA_DIR}/*.html)")
    parser.add_argument("--url", help="page URL used to resolve relative links and check URL shape")
    args = parser.parse_args()

    html_files = args.files or sorted(DATA_DIR.glob("*.html"))
    print(f"Diagnosing {len(html_files)} files (parse + extraction only, NO network)\n")

    all_reports = []
    for filepath in html_files:
        report = diagnose_file(filepath, args.url)
        all_reports.append(report)

        print(f"{'=' * 70}")
        print(f"  {report['file']}  ({report['url']})")
        print(f"{'=' * 70}")

        p = report["parser"]
        print(f"  Parser: {p['json_ld_blocks']} JSON-LD | OG {p['og_tags']} | itemprop {p['itemprops']}")
        print(f"  Title:  {p['title']}")

        for label in ("structured", "fallback", "merged"):
            fields = report["sources"][label]
            if fields is None:
                print(f"\n  {label}: no Product node")
                continue
            print(f"\n  {label} (is_product={fields['is_product']}):")
            for field in FIELDS:
                print(f"    {field:<12} {fields[field] if fields[field] is not None else 'MISSING'}")

        verdict = "ACCEPTED" if report["accepted"] else f"SKIPPED ({report['skip_reason']})"
        print(f"\n  => {verdict}\n")

    # Summary table
    print(f"\n{'=' * 70}")
    print("SUMMARY")
    print(f"{'=' * 70}")
    for r in all_reports:
        verdict = "OK" if r["accepted"] else r["skip_reason"]
        structured = "product" if r["sources"]["structured"] else "-"
        print(f"  {r['file'][:40]:<42} {structured:<9} {verdict}")


if __name__ == "__main__":
    main()

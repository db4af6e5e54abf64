#!/usr/bin/env python3
"""
DynamoDB Smart Query — Diagnostic Script
========================================

Usage:
    python diagnose.py <table> "<query>"

Example:
    python diagnose.py Trades "trades after 2025-02-25"

This script calls the /get-schema and /diagnose endpoints and prints a
step-by-step trace of the interpretation pipeline so you can see exactly
which attribute, operator and value a question was turned into.

The service URL comes from SERVICE_URL (default http://localhost:8000).
"""

import json
import sys

import requests

from config import SERVICE_URL

SEPARATOR = "=" * 70
DASH = "-" * 40


def colour(text, code):
    """ANSI colour wrapper (no-op on Windows without colorama)."""
    return f"\033[{code}m{text}\033[0m"


def green(t):  return colour(t, 32)
def red(t):    return colour(t, 31)
def yellow(t): return colour(t, 33)
def cyan(t):   return colour(t, 36)
def bold(t):   return colour(t, 1)


def diagnose_schema(table_name):
    print(f"\n{SEPARATOR}")
    print(bold("STEP 0 — SCHEMA INSPECTION  (POST /get-schema)"))
    print(SEPARATOR)

    try:
        resp = requests.post(f"{SERVICE_URL}/get-schema", json={"tableName": table_name}, timeout=10)
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        print(red(f"  ERROR: {e}"))
        return []

    if not data.get("success"):
        print(red(f"  {data.get('errorType')}: {data.get('message')}"))
        return []

    print(cyan("\n  Declared attributes:"))
    for attr in data.get("attributes", []):
        print(f"    {green(attr['name'])}: {attr['type']}")
    print(f"\n  {bold('Total attributes:')} {data.get('attributeCount', '?')}")

    return [a["name"] for a in data.get("attributes", [])]


def diagnose_query(payload):
    print(f"\n{SEPARATOR}")
    print(bold("FULL PIPELINE DIAGNOSIS  (POST /diagnose)"))
    print(f"  Query: \"{payload['queryText']}\"")
    print(SEPARATOR)

    try:
        resp = requests.post(f"{SERVICE_URL}/diagnose", json=payload, timeout=15)
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        print(red(f"  ERROR: {e}"))
        return

    steps = data.get("steps", {})

    if "0_input" in steps:
        print(f"    {red('FAIL')} — {steps['0_input'].get('error')}")
        return

    # Step 1: Schema
    s1 = steps.get("1_schema", {})
    print(f"\n{DASH}")
    print(bold("  Step 1 — Schema"))
    if s1.get("status") == "ok":
        print(f"    {green('OK')} — attributes: {s1['attributes']}")
    else:
        print(f"    {red('FAIL')} — {s1.get('error')}")
        return

    # Step 2: Superlative
    s2 = steps.get("2_superlative", {})
    print(f"\n{DASH}")
    print(bold("  Step 2 — Superlative Detection"))
    if s2.get("direction"):
        if s2.get("sort_attribute"):
            print(f"    {green('YES')} — {s2['direction']} on {s2['sort_attribute']}")
        else:
            print(f"    {yellow('IGNORED')} — {s2['direction']} requested but no amount/value attribute")
    else:
        print("    no highest / lowest wording")

    # Step 3: Cascade
    s3 = steps.get("3_cascade", {})
    print(f"\n{DASH}")
    print(bold("  Step 3 — Extraction Cascade"))
    print(f"    implied attribute: {s3.get('implied_attribute')}")
    for entry in s3.get("rules", []):
        status = entry["status"]
        if status == "matched":
            c = entry["condition"]
            print(f"    {green('MATCHED')}  {entry['rule']}: {c['field']} {c['operator']} {c['value']!r}")
        elif status == "skipped":
            print(f"    {cyan('SKIPPED')}  {entry['rule']}")
        else:
            print(f"    {red('NO MATCH')} {entry['rule']}")

    # Step 4: IR
    s4 = steps.get("4_ir", {})
    print(f"\n{DASH}")
    print(bold("  Step 4 — Parsed IR"))
    if s4.get("status") == "ok":
        print(f"    {green('OK')} — {s4.get('interpretation')}")
    else:
        print(f"    {red('FAIL')} — {s4.get('error')}")
        return

    # Step 5: Compile
    s5 = steps.get("5_compile", {})
    print(f"\n{DASH}")
    print(bold("  Step 5 — Filter Compilation"))
    if s5.get("type") == "scan":
        print(f"    expression: {s5.get('filter_expression')}")
        print(f"    names:      {s5.get('expression_attribute_names')}")
        print(f"    values:     {json.dumps(s5.get('expression_attribute_values'))}")
        print(f"    limit:      {s5.get('limit')}")
    else:
        print(f"    superlative sort: {s5.get('sort')}  limit: {s5.get('limit')}")

    # Step 6: Execute preview
    s6 = steps.get("6_execute_preview", {})
    print(f"\n{DASH}")
    print(bold("  Step 6 — Execution Preview"))
    if s6.get("status") == "ok":
        returned = s6.get("returned", 0)
        if returned:
            print(f"    {green(f'OK — {returned} items matched')}")
            for i, item in enumerate(s6.get("sample_items", []), 1):
                print(f"    Item {i}: {json.dumps(item, default=str)[:300]}")
        else:
            print(f"    {red('0 ITEMS MATCHED')}")
            print(f"    {yellow('→ The filter compiled but matched nothing in the evaluated page.')}")
            print(f"    {yellow('  Check: is the attribute right? Is the value typed as expected?')}")
    elif s6.get("status") == "skipped":
        print(f"    {cyan('SKIPPED')} — {s6.get('reason')}")
    else:
        print(f"    {red('ERROR')} — {s6.get('error')}")

    print(f"\n{SEPARATOR}")
    print(bold("DIAGNOSIS COMPLETE"))
    print(SEPARATOR)


def main():
    if len(sys.argv) < 3:
        print(bold("DynamoDB Smart Query Diagnostic Tool"))
        print()
        print("Usage:")
        print(f"  python {sys.argv[0]} <table> \"<query>\"")
        print()
        print("Examples:")
        print(f'  python {sys.argv[0]} Trades "records from China"')
        print(f'  python {sys.argv[0]} Trades "Amount > 1000"')
        print()
        print(f"The server must be running at {SERVICE_URL}")
        print()

        # Interactive mode
        print(bold("Interactive mode:"))
        table = input("  Table name: ").strip()
        query = input("  NL query: ").strip()
    else:
        table = sys.argv[1]
        query = sys.argv[2]

    if not table or not query:
        print(red("Error: table and query are required"))
        sys.exit(1)

    # Check server health
    try:
        r = requests.get(f"{SERVICE_URL}/health", timeout=3)
        if r.status_code == 200:
            print(green(f"Server is healthy (v{r.json().get('version', '?')})"))
        else:
            print(red("Server returned non-200 status"))
    except requests.RequestException:
        print(red(f"Cannot reach server at {SERVICE_URL} — is uvicorn running?"))
        sys.exit(1)

    diagnose_schema(table)
    diagnose_query({"tableName": table, "queryText": query})


if __name__ == "__main__":
    main()

#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
from pathlib import Path


def build_sample(name: str) -> dict:
    return {
        "personal": {
            "fullName": name,
            "location": "Berlin, Germany",
            "email": "jane.doe@example.com",
            "phone": "+49 30 1234567",
            "linkedin": "linkedin.com/in/janedoe",
            "summary": "Backend engineer who builds data pipelines.",
        },
        "skills": [
            {"id": "skills-1-0", "name": "Python", "category": "Languages"},
            {"id": "skills-1-1", "name": "PostgreSQL", "category": "Databases"},
        ],
        "experience": [
            {
                "id": "experience-1-0",
                "company": "Acme Analytics",
                "position": "Software Engineer",
                "location": "Berlin",
                "startDate": "2021-03",
                "endDate": "",
                "isCurrent": True,
                "bulletPoints": [
                    {"id": "bullet-1-0-0", "text": "worked on ingestion jobs"},
                    {"id": "bullet-1-0-1", "text": "helped with the reporting api"},
                ],
            }
        ],
        "education": [
            {"id": "education-1-0", "school": "TU Berlin", "degree": "BSc Computer Science", "graduationYear": "2020"}
        ],
        "projects": [
            {
                "id": "projects-1-0",
                "name": "csv2parquet",
                "link": "https://github.com/example/csv2parquet",
                "description": "small tool converting csv files",
            }
        ],
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Write a sample structured resume JSON document")
    parser.add_argument("--output", required=True, help="output file path (.json)")
    parser.add_argument("--name", default="Jane Doe", help="candidate full name")
    args = parser.parse_args()

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(build_sample(args.name), indent=2, ensure_ascii=False), encoding="utf-8")

    print(f"sample resume written: {output}")


if __name__ == "__main__":
    main()

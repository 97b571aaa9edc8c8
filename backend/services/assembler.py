import json
import logging
import os
from typing import Sequence

from config import Settings, get_settings
from models.package import PackageSchema
from services.writer import ContentWriter, LINT_HEADER

logger = logging.getLogger("assembler")

TEST_SCRIPT = "node tests.js"


def function_stem(filename: str) -> str:
    return os.path.splitext(filename)[0]


def list_function_names(package_dir: str) -> list[str]:
    """Function stems found on disk, sorted so the order does not depend on the filesystem."""
    functions_dir = os.path.join(package_dir, "functions")
    if not os.path.isdir(functions_dir):
        return []
    return sorted(function_stem(f) for f in os.listdir(functions_dir) if f.endswith(".js"))


def build_index(manifest: Sequence[str]) -> str:
    lines = [f'module.exports.{name} = require("./functions/{name}.js").{name};' for name in manifest]
    return LINT_HEADER + "\n".join(lines) + "\n"


def build_tests_runner(manifest: Sequence[str]) -> str:
    modules = "\n".join(f'    "./tests/{name}.js",' for name in manifest)
    return LINT_HEADER + f"""const testModules = [
{modules}
];

let failures = 0;

testModules.forEach((modulePath) => {{
    try {{
        const {{ runTests }} = require(modulePath);
        const result = runTests();
        console.log(result);
        if (result && result.number_of_tests_failed > 0) {{
            failures += 1;
        }}
    }} catch (error) {{
        console.error(`${{modulePath}} crashed:`, error);
        failures += 1;
    }}
}});

if (failures > 0) {{
    process.exitCode = 1;
}}
"""


class PackageAssembler:
    """Builds the npm package files around the generated functions and tests."""

    def __init__(self, settings: Settings | None = None, writer: ContentWriter | None = None):
        self.settings = settings or get_settings()
        self.writer = writer or ContentWriter()

    def package_json(self, schema: PackageSchema) -> dict:
        s = self.settings
        data = {
            "name": schema.name,
            "version": "1.0.0",
            "description": schema.description,
            "main": "index.js",
            "scripts": {"test": TEST_SCRIPT},
            "keywords": [f.function_name for f in schema.functions],
            "author": {"name": s.AUTHOR_NAME, "url": s.AUTHOR_URL},
            "license": "MIT",
        }
        if s.AUTHOR_ORG_NAME:
            data["contributors"] = [{"name": s.AUTHOR_ORG_NAME, "url": s.AUTHOR_ORG_URL}]
        if s.GITHUB_USERNAME:
            repo = f"https://github.com/{s.GITHUB_USERNAME}/{schema.name}"
            data["repository"] = {"type": "git", "url": f"git+{repo}.git"}
            data["bugs"] = {"url": f"{repo}/issues"}
            data["homepage"] = f"{repo}#readme"
        return data

    def readme(self, schema: PackageSchema) -> str:
        s = self.settings
        functions = "\n".join(f"- `{f.function_name}`: {f.function_summary}" for f in schema.functions)
        first = schema.functions[0].function_name if schema.functions else "fn"
        readme = f"""# {schema.name}

{schema.description}

## Installation

```bash
npm install {schema.name}
```

## Usage

```js
const {{ {first} }} = require("{schema.name}");
```

## Functions

{functions}
"""
        if s.AUTHOR_NAME:
            readme += f"\n## Author\n\n[{s.AUTHOR_NAME}]({s.AUTHOR_URL})\n"
        if s.AUTHOR_ORG_NAME:
            readme += f"\nBuilt by [{s.AUTHOR_ORG_NAME}]({s.AUTHOR_ORG_URL})\n"
        return readme + "\n## Tests\n"

    def scaffold(self, schema: PackageSchema, package_dir: str) -> None:
        """Create the package directory with package.json and README.md."""
        os.makedirs(package_dir, exist_ok=True)
        with open(os.path.join(package_dir, "package.json"), "w", encoding="utf-8") as f:
            json.dump(self.package_json(schema), f, indent=2)
        self.writer.write(os.path.join(package_dir, "README.md"), self.readme(schema), is_markdown=True)

    def patch_package_json(self, package_dir: str) -> dict:
        path = os.path.join(package_dir, "package.json")
        data = {}
        if os.path.exists(path):
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        data.setdefault("scripts", {})["test"] = TEST_SCRIPT
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        return data

    def finalize(self, package_dir: str, manifest: Sequence[str] | None = None) -> list[str]:
        """Write index.js and tests.js and point `npm test` at tests.js."""
        if manifest is None:
            manifest = list_function_names(package_dir)
        manifest = list(manifest)

        with open(os.path.join(package_dir, "index.js"), "w", encoding="utf-8") as f:
            f.write(build_index(manifest))
        with open(os.path.join(package_dir, "tests.js"), "w", encoding="utf-8") as f:
            f.write(build_tests_runner(manifest))
        self.patch_package_json(package_dir)

        logger.info(f"Assembled {package_dir} with {len(manifest)} functions")
        return manifest

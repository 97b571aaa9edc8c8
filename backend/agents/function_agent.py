import logging
import os

from agents.prompts import function_prompt, test_prompt
from models.package import FunctionDescriptor, GeneratedArtifact, PackageMeta, is_js_identifier
from services.writer import ContentWriter

logger = logging.getLogger("agent.function_synthesis")

TEST_PREAMBLE = """const fs = require("fs");
const path = require("path");
const {{ {function_name} }} = require("../functions/{function_name}.js");

/**
 * Builds a shields.io badge URL.
 *
 * @param {{string}} label - The left-hand badge text.
 * @param {{string}} message - The right-hand badge text.
 * @param {{string}} color - The badge color.
 * @return {{string}} The badge image URL.
 */
function generateBadgeUrl(label, message, color) {{
    const escape = (text) => encodeURIComponent(String(text).replace(/-/g, "--").replace(/_/g, "__"));
    return `https://img.shields.io/badge/${{escape(label)}}-${{escape(message)}}-${{color}}`;
}}

/**
 * Builds a Markdown badge summarising a test run.
 *
 * @param {{string}} name - The name of the tested function.
 * @param {{number}} passed - Number of passing tests.
 * @param {{number}} failed - Number of failing tests.
 * @return {{string}} A Markdown image tag.
 */
function generateTestBadge(name, passed, failed) {{
    const color = failed === 0 ? "brightgreen" : "red";
    const url = generateBadgeUrl(name, `${{passed}} passed, ${{failed}} failed`, color);
    return `![${{name}} tests](${{url}})`;
}}

/**
 * Appends content to the package README.
 *
 * @param {{string}} content - The Markdown to append.
 * @return {{void}}
 */
function addToReadme(content) {{
    fs.appendFileSync(path.join(__dirname, "..", "README.md"), `\\n${{content}}\\n`);
}}
"""

TEST_TRAILER = "module.exports = { runTests };\n"


def build_test_module(function_name: str, generated_test: str) -> str:
    """Wrap a generated test body with the helper preamble and entry-point export."""
    preamble = TEST_PREAMBLE.format(function_name=function_name)
    return f"{preamble}\n{generated_test.strip()}\n\n{TEST_TRAILER}"


class FunctionSynthesisAgent:
    """Generates one function and its companion test for a package.

    Completion errors propagate to the caller so the whole idea fails with them.
    """

    def __init__(self, llm_service, writer: ContentWriter | None = None):
        self.llm = llm_service
        self.writer = writer or ContentWriter()

    async def synthesize(
        self,
        descriptor: FunctionDescriptor,
        meta: PackageMeta,
        package_dir: str,
    ) -> bool:
        """Write `functions/<name>.js` and `tests/<name>.js`.

        Returns False without writing anything when the model answered with a
        markdown code fence.
        """
        name = descriptor.function_name
        if not is_js_identifier(name):
            logger.warning(f"Skipping {name!r}: not a JavaScript identifier")
            return False
        logger.info(f"Building function {meta.name}.{name}: {descriptor.function_summary}")

        code = await self.llm.complete(
            function_prompt(name, descriptor.function_summary, meta.description)
        )
        function_artifact = GeneratedArtifact(kind="function", function_name=name, content=code)
        if function_artifact.has_code_fence:
            logger.warning(f"Skipping {name}: response still contains a code fence")
            return False

        self.writer.write(os.path.join(package_dir, "functions", f"{name}.js"), function_artifact.content)

        logger.info(f"Generating tests for {name}()")
        test_code = await self.llm.complete(test_prompt(name, function_artifact.content))
        test_artifact = GeneratedArtifact(kind="test", function_name=name, content=test_code)

        self.writer.write(
            os.path.join(package_dir, "tests", f"{name}.js"),
            build_test_module(name, test_artifact.content),
        )
        return True

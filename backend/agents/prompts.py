"""Prompt templates for package, function and test generation."""

FORMAT_RULES = """
Only respond with the javascript code, and nothing else.
You may add comments to explain the code, but only as JSDoc and regular javascript comments.
Assume you're writing directly into the .js file, so never wrap the answer in triple backticks; write raw JS.
"""

LINTING_RULES = """
Rules:
1. Strings must use double quotes.
2. Use "const" wherever variables aren't re-assigned.
3. Use parentheses around arrow function arguments.
4. Write valid JSDoc for each function with a @param tag per parameter and a @return tag.
5. Include a commented usage example in the JSDoc.
6. Don't import or require any packages, write everything in pure Javascript.
7. All functions must be written in camelCase.
8. Never use "while" loops.
9. Trailing spaces are not allowed.
"""


def package_ideas_prompt(idea_prompt: str, number_of_functions: int, name_prefix: str) -> str:
    return f"""Create 1 useful npm package I could build for the {idea_prompt} community that doesn't exist yet.

The package name must start with "{name_prefix}" and be a valid npm package name.

Respond ONLY with a JSON array of objects, each with:
- name: the package name
- description: what the package does
- functions: a list of exactly {number_of_functions} functions, each an object with "function_name" and "function_summary"

Only propose packages that need no external packages, models or APIs and are feasible in pure Javascript.
No markdown, no code blocks, no explanation. Just the raw JSON array."""


def function_prompt(function_name: str, function_summary: str, package_description: str) -> str:
    return f"""Write a Node.js function called "{function_name}" for a package that {package_description}.
The function performs the following task: {function_summary}

Handle every edge case implied by the task: invalid argument types, empty inputs and boundary values.
Do not call the function yourself.
{FORMAT_RULES}
{LINTING_RULES}
After the function, export it exactly like this:
module.exports = {{ {function_name} }};
"""


def test_prompt(function_name: str, function_code: str) -> str:
    return f"""Write tests in pure Javascript, with no external packages, for this function:
{function_code}

"{function_name}" is already required and in scope, do not require it again.

Put every test inside a single function named "runTests" that:
- declares `const name_of_function = "{function_name}";`
- counts results in `let number_of_tests_passed = 0;` and `let number_of_tests_failed = 0;`
- wraps each assertion in its own try/catch so one failing case does not stop the others
- ends by calling `addToReadme(generateTestBadge(name_of_function, number_of_tests_passed, number_of_tests_failed));`
- returns `{{ name_of_function, number_of_tests_passed, number_of_tests_failed }}`

`addToReadme` and `generateTestBadge` are already defined. Do not call runTests and do not export anything.
{FORMAT_RULES}
{LINTING_RULES}
"""

"""Scenarios for the Gmail Storage Analyzer demo page."""

from __future__ import annotations

from scenario_harness.models.scenario import Action, Assertion, Scenario, ScenarioSuite, WaitCondition

APP_TITLE = "Gmail Storage Analyzer"
SIGN_IN_BUTTON = 'button:has-text("Sign in with Google")'
EXPORT_CSV_BUTTON = 'button:has-text("Export CSV")'
FIRST_TREEMAP_BLOCK = ".treemap-block >> nth=0"
LOADING_TIMEOUT_MS = 10000

# Placeholder credentials in the demo page log these on load.
EXPECTED_CONSOLE_NOISE = ["YOUR_SENTRY_DSN", "YOUR_CLIENT_ID"]


def sign_in() -> list[Action]:
    """Demo sign-in: the button raises a native confirm that must be accepted."""
    return [
        Action(action_type="register_dialog_handler", value="accept",
               description="Accept the demo-mode dialog"),
        Action(action_type="click", selector=SIGN_IN_BUTTON, description="Sign in with Google"),
        Action(action_type="wait", selector="#mainSection", value="visible",
               description="Main section appears"),
    ]


def load_data() -> list[Action]:
    return [
        *sign_in(),
        Action(action_type="click", selector="#loadBtn", description="Analyze emails"),
        Action(action_type="wait", selector="#loading", value="hidden",
               timeout_ms=LOADING_TIMEOUT_MS, description="Loading finishes"),
    ]


def _visible(selector: str, description: str = "") -> Assertion:
    return Assertion(assertion_type="is_visible", selector=selector, description=description)


def build_suite() -> ScenarioSuite:
    return ScenarioSuite(
        name=APP_TITLE,
        before_each=[Action(action_type="navigate", value="/", description="Open the analyzer")],
        scenarios=[
            Scenario(
                name="page loads successfully",
                tags=["smoke"],
                assertions=[
                    Assertion(assertion_type="title_matches", expected_value=APP_TITLE,
                              description="Page title"),
                    Assertion(assertion_type="text_contains", selector="h1",
                              expected_value=APP_TITLE, description="Heading"),
                ],
            ),
            Scenario(
                name="sign in button is visible",
                tags=["smoke"],
                assertions=[_visible(SIGN_IN_BUTTON, "Sign-in button")],
            ),
            Scenario(
                name="demo data loads",
                steps=sign_in(),
                assertions=[
                    Assertion(assertion_type="text_not_equals", selector="#totalEmails",
                              expected_value="0", description="Total emails populated"),
                ],
            ),
            Scenario(
                name="analyze emails button works",
                steps=[
                    *sign_in(),
                    Action(action_type="click", selector="#loadBtn", description="Analyze emails"),
                ],
                waits=[
                    WaitCondition(condition_type="element_hidden", selector="#loading",
                                  timeout_ms=LOADING_TIMEOUT_MS),
                ],
                assertions=[_visible(".treemap-block", "Treemap rendered")],
            ),
            Scenario(
                name="view switching to time view",
                tags=["views"],
                steps=[
                    *load_data(),
                    Action(action_type="click", selector='button:has-text("By Time")'),
                ],
                assertions=[
                    Assertion(assertion_type="has_class", selector='button:has-text("By Time")',
                              expected_value="active", description="Time view active"),
                ],
            ),
            Scenario(
                name="view switching to year view",
                tags=["views"],
                steps=[
                    *load_data(),
                    Action(action_type="click", selector='button:has-text("By Time")'),
                    Action(action_type="click", selector='button:has-text("By Year")'),
                ],
                assertions=[
                    Assertion(assertion_type="has_class", selector='button:has-text("By Year")',
                              expected_value="active", description="Year view active"),
                ],
            ),
            Scenario(
                name="drill-down navigation works",
                steps=[
                    *load_data(),
                    Action(action_type="click", selector=FIRST_TREEMAP_BLOCK,
                           description="Open first block"),
                ],
                assertions=[
                    _visible("#breadcrumb", "Breadcrumb"),
                    _visible("#groupToolbar", "Group toolbar"),
                ],
            ),
            Scenario(
                name="toolbar actions are present",
                steps=[
                    *load_data(),
                    Action(action_type="click", selector=FIRST_TREEMAP_BLOCK),
                ],
                assertions=[
                    _visible('button:has-text("View All Emails")'),
                    _visible('button:has-text("Open in Gmail")'),
                    _visible('button:has-text("Export")'),
                ],
            ),
            Scenario(
                name="export functionality works",
                tags=["export"],
                steps=[
                    *load_data(),
                    Action(action_type="register_download_listener"),
                    Action(action_type="click", selector=EXPORT_CSV_BUTTON, description="Export CSV"),
                ],
                assertions=[
                    Assertion(assertion_type="download_filename_matches",
                              expected_value=r"gmail_storage_analysis.*\.csv",
                              description="CSV file name"),
                ],
            ),
            Scenario(
                name="treemap is scrollable",
                steps=load_data(),
                assertions=[
                    Assertion(assertion_type="css_property_equals", selector="#treemapContainer",
                              property_name="overflow", expected_value="auto"),
                ],
            ),
            Scenario(
                name="year filter populates",
                steps=sign_in(),
                assertions=[
                    Assertion(assertion_type="count_greater_than", selector="#yearFilter option",
                              count=10, description="Many years listed"),
                ],
            ),
            Scenario(
                name="no console errors on load",
                tags=["smoke"],
                waits=[WaitCondition(condition_type="network_idle")],
                assertions=[
                    Assertion(assertion_type="console_errors_excluding",
                              ignore_patterns=EXPECTED_CONSOLE_NOISE, max_allowed=0),
                ],
            ),
        ],
    )

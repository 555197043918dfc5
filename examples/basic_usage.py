"""
Example: Basic SAP Cloud ALM usage with sap_calm
================================================

This example shows how to call SAP Cloud ALM tools directly from Python,
without an MCP client.
"""

from sap_calm import CalmSettings, CalmSession, ToolDispatcher
from sap_calm.core.config import ApiPath
from sap_calm.core.models import EndpointDescriptor
from sap_calm.odata import ODataQuery, build_odata_query


def example_sandbox_tools():
    """Call tools against the SAP API Business Hub sandbox."""

    cfg = CalmSettings(sandbox=True, api_key="YOUR_API_KEY")
    cfg.validate()

    dispatcher = ToolDispatcher.from_settings(cfg)
    try:
        result = dispatcher.invoke(
            "list_features",
            {"select": "uuid,title,statusCode", "orderby": "modifiedAt desc", "top": 10, "count": True},
        )
        print(result.to_dict())

        # Errors come back as structured results
        missing = dispatcher.invoke("get_feature", {"uuid": "00000000-0000-0000-0000-000000000000"})
        print(missing.to_dict()["status"], missing.error_detail)
    finally:
        dispatcher.close()


def example_low_level_session():
    """Build a query by hand and send it through the gateway."""

    # Reads CALM_TENANT, CALM_REGION, CALM_CLIENT_ID, CALM_CLIENT_SECRET
    cfg = CalmSettings.from_env()

    query = ODataQuery(select=["uuid", "title"], top=5).where("projectId", "MY-PROJECT")
    endpoint = EndpointDescriptor(ApiPath.DOCUMENTS, "Documents")

    with CalmSession(cfg) as sess:
        raw = sess.execute("GET", sess.url_for(endpoint, query=build_odata_query(query)))
        print(raw.status, raw.text[:500])


if __name__ == "__main__":
    # Uncomment the example you want to run
    # example_sandbox_tools()
    # example_low_level_session()

    print("Set up your environment variables and uncomment an example to run.")
    print("Required: CALM_TENANT, CALM_REGION, CALM_CLIENT_ID, CALM_CLIENT_SECRET")
    print("Sandbox: CALM_SANDBOX=true, CALM_API_KEY")

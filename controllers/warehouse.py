"""Contains logic that communicates with the warehouse authority
"""
import httpx

from schema.warehouse import SetupInfo


SETUP_INFO_PATH = "/setup/info"


async def send_setup_info_request(client: httpx.AsyncClient, host: str, api_key: str) -> SetupInfo:
    """Retrieve the public key and name of the warehouse at `host`

    Args:
        client (httpx.AsyncClient): Client used to send the request.
        host (str): Base URL of the warehouse.
        api_key (str): API key identifying this application to the warehouse.

    Raises:
        httpx.HTTPError: Raised when the request fails or the warehouse does not answer with a 2xx status.
        ValueError: Raised when the response body is not valid setup information.

    Returns:
        SetupInfo: The setup information of the warehouse.
    """
    response = await client.get(
        url=f"{host.rstrip('/')}{SETUP_INFO_PATH}",
        headers={"api-key": api_key},
    )
    response.raise_for_status()

    return SetupInfo.model_validate(response.json())

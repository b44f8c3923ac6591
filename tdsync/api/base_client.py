"""
Base API client with common functionality
"""

import asyncio
from abc import ABC
from typing import Optional, Dict, Any
import httpx
from tdsync.utils.logger import logger
from tdsync.utils.error_handler import APIError, TaskNotFoundError
from tdsync.config.constants import MAX_RETRIES, RETRY_DELAY


class BaseAPIClient(ABC):
    """Base class for API clients with common functionality"""
    
    def __init__(
        self,
        base_url: str,
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize base API client
        
        Args:
            base_url: Base URL for API
            timeout: Request timeout in seconds
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self.logger = logger
    
    @staticmethod
    def _is_retryable(status_code: int) -> bool:
        return status_code == 429 or status_code >= 500
    
    async def _request(
        self,
        method: str,
        endpoint: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        retries: int = MAX_RETRIES,
    ) -> Dict[str, Any]:
        """
        Make HTTP request with retry logic
        
        Transport errors, 429 and 5xx responses are retried with a linear
        backoff. Other client errors fail immediately.
        
        Args:
            method: HTTP method (GET, POST, DELETE)
            endpoint: API endpoint
            headers: Request headers
            params: Query parameters
            json_data: JSON body
            retries: Number of attempts
            
        Returns:
            Response data as dictionary
            
        Raises:
            TaskNotFoundError: If the API answers 404
            APIError: If request fails after all retries
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        
        for attempt in range(retries):
            try:
                self.logger.debug(f"Request: {method} {url} (attempt {attempt + 1}/{retries})")
                
                request_kwargs = {
                    "method": method,
                    "url": url,
                    "headers": headers,
                    "params": params,
                }
                if json_data is not None:
                    request_kwargs["json"] = json_data
                    self.logger.debug(f"Request JSON data: {json_data}")
                
                response = await self.client.request(**request_kwargs)
                
                self.logger.debug(f"Response status: {response.status_code}")
                if response.status_code >= 400:
                    self.logger.warning(f"Error response body: {response.text[:1000]}")
                
                response.raise_for_status()
                
                # Handle empty response (204 No Content or empty body)
                if response.status_code == 204 or not response.text.strip():
                    return {}
                
                try:
                    return response.json()
                except ValueError:
                    return {}
                
            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code == 404:
                    raise TaskNotFoundError(f"{method} {url} returned 404", status_code) from e
                if self._is_retryable(status_code) and attempt < retries - 1:
                    self.logger.warning(
                        f"Request failed with status {status_code}, "
                        f"retrying in {RETRY_DELAY * (attempt + 1)} seconds..."
                    )
                    await asyncio.sleep(RETRY_DELAY * (attempt + 1))
                    continue
                self.logger.error(f"Request {method} {url} failed with status {status_code}")
                raise APIError(f"{method} {url} returned {status_code}", status_code) from e
            
            except httpx.RequestError as e:
                if attempt < retries - 1:
                    self.logger.warning(
                        f"Request error: {e}, retrying in {RETRY_DELAY * (attempt + 1)} seconds..."
                    )
                    await asyncio.sleep(RETRY_DELAY * (attempt + 1))
                    continue
                self.logger.error(f"Request error after {retries} attempts: {e}")
                raise APIError(f"{method} {url} failed: {e}") from e
        
        raise APIError(f"{method} {url} failed: no attempts made")
    
    async def get(
        self,
        endpoint: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make GET request"""
        return await self._request("GET", endpoint, headers=headers, params=params)
    
    async def post(
        self,
        endpoint: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make POST request"""
        return await self._request("POST", endpoint, headers=headers, params=params, json_data=json_data)
    
    async def delete(
        self,
        endpoint: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make DELETE request"""
        return await self._request("DELETE", endpoint, headers=headers, params=params)
    
    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()
    
    async def __aenter__(self):
        """Async context manager entry"""
        return self
    
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()

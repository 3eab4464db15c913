"""AWS endpoint service.

Functions deployed for STeLLAR are AWS Lambda functions, each behind its own
HTTP API in API Gateway v2. The API carries tags with the repurpose
identifier, the function and the deployed artifact size, so later runs can list and reuse
the endpoints instead of deploying new functions.
"""

import uuid
from typing import Dict, List, Optional

import boto3

from stellar.connection import Endpoint, EndpointService
from stellar.experiment import SubExperiment
from stellar.types import PackageType, Provider
from stellar.utils import sanitize_name

REPURPOSE_TAG = "stellar-repurpose-identifier"
IMAGE_SIZE_TAG = "stellar-image-size-mb"
FUNCTION_TAG = "stellar-function"


class AWSEndpointService(EndpointService):
    """Lists, deploys and repurposes Lambda functions exposed through HTTP APIs.

    Attributes:
        lambda_client: boto3 Lambda client
        api_client: boto3 API Gateway v2 client
    """

    def __init__(
        self,
        session: boto3.session.Session,
        region: str,
        settings: Optional[dict] = None,
        packager=None,
    ) -> None:
        """Initialize the service.

        Args:
            session: boto3 session used to create service clients
            region: AWS region of the deployed functions
            settings: AWS section of the experiment configuration
                ('lambda_role', 'code_bucket')
            packager: container image packager, required for container deployments
        """
        super().__init__()
        self._region = region
        self._settings = settings if settings else {}
        self._packager = packager
        self.lambda_client = session.client(service_name="lambda", region_name=region)
        self.api_client = session.client(service_name="apigatewayv2", region_name=region)

    @staticmethod
    def typename() -> str:
        return "AWS.EndpointService"

    def _api_arn(self, api_id: str) -> str:
        return f"arn:aws:apigateway:{self._region}::/apis/{api_id}"

    def _apis(self) -> List[dict]:
        apis: List[dict] = []
        kwargs: Dict[str, str] = {}
        while True:
            response = self.api_client.get_apis(**kwargs)
            apis.extend(response.get("Items", []))
            next_token = response.get("NextToken")
            if not next_token:
                return apis
            kwargs = {"NextToken": next_token}

    def list_apis(self, repurpose_identifier: Optional[str]) -> Optional[List[Endpoint]]:
        """List endpoints deployed by earlier runs under the repurpose identifier.

        Args:
            repurpose_identifier: reuse key; without it nothing is reused

        Returns:
            List[Endpoint]: endpoints available for reuse, possibly empty
        """
        if not repurpose_identifier:
            return []

        endpoints: List[Endpoint] = []
        for api in self._apis():
            tags = api.get("Tags", {})
            if tags.get(REPURPOSE_TAG) != repurpose_identifier:
                continue

            integrations = self.api_client.get_integrations(ApiId=api["ApiId"])["Items"]
            if not integrations:
                self.logging.warning(f"HTTP API {api['Name']} has no integration, skipping it.")
                continue
            function_arn = integrations[0]["IntegrationUri"]
            function_config = self.lambda_client.get_function_configuration(
                FunctionName=function_arn
            )
            package_type = (
                PackageType.CONTAINER
                if function_config.get("PackageType") == "Image"
                else PackageType.ZIP
            )
            endpoints.append(
                Endpoint(
                    id=api["ApiId"],
                    function_name=function_config["FunctionName"],
                    memory_mb=function_config["MemorySize"],
                    image_size_mb=float(tags.get(IMAGE_SIZE_TAG, 0)),
                    package_type=package_type,
                    function=tags.get(FUNCTION_TAG, ""),
                )
            )
        self.logging.info(
            f"Found {len(endpoints)} endpoints tagged with repurpose identifier "
            f"{repurpose_identifier}."
        )
        return endpoints

    def _code(self, sub: SubExperiment) -> dict:
        if sub.package_type == PackageType.CONTAINER.value:
            if self._packager is None:
                raise RuntimeError("Container deployments require a container image packager")
            image_uri = self._packager.setup_container_image_deployment(
                sub.function, Provider.AWS.value
            )
            self._used_container_images = True
            return {"ImageUri": image_uri}

        code_bucket = self._settings.get("code_bucket")
        if not code_bucket:
            raise RuntimeError("Missing 'code_bucket' in the AWS configuration")
        return {"S3Bucket": code_bucket, "S3Key": self.artifact_key(sub)}

    @staticmethod
    def _artifact_tags(sub: SubExperiment) -> Dict[str, str]:
        return {
            IMAGE_SIZE_TAG: f"{sub.function_image_size_mb:g}",
            FUNCTION_TAG: sub.function,
        }

    @staticmethod
    def artifact_key(sub: SubExperiment) -> str:
        """Location of the zip artifact of a function in the code bucket."""
        return f"{sub.function}/{sub.function_image_size_mb:g}MB.zip"

    def deploy_function(self, sub: SubExperiment, repurpose_identifier: Optional[str]) -> Endpoint:
        """Create a Lambda function and an HTTP API routing to it.

        Args:
            sub: sub-experiment describing memory, runtime and artifact size
            repurpose_identifier: tag letting later runs reuse the endpoint

        Returns:
            Endpoint: the newly deployed endpoint

        Raises:
            RuntimeError: if the AWS configuration lacks the Lambda role or code bucket
        """
        role = self._settings.get("lambda_role")
        if not role:
            raise RuntimeError("Missing 'lambda_role' in the AWS configuration")

        prefix = sanitize_name(repurpose_identifier) if repurpose_identifier else "stellar"
        func_name = f"{prefix}-{sanitize_name(sub.function)}-{str(uuid.uuid4())[0:8]}"
        self.logging.info(f"Creating function {func_name} for experiment {sub.id}.")

        create_function_params = {
            "FunctionName": func_name,
            "Role": role,
            "MemorySize": sub.function_memory_mb,
            "Code": self._code(sub),
        }
        if sub.package_type == PackageType.CONTAINER.value:
            create_function_params["PackageType"] = "Image"
        else:
            create_function_params["PackageType"] = "Zip"
            create_function_params["Runtime"] = sub.runtime
            create_function_params["Handler"] = sub.handler
        ret = self.lambda_client.create_function(**create_function_params)

        waiter = self.lambda_client.get_waiter("function_active_v2")
        waiter.wait(FunctionName=func_name)

        tags = self._artifact_tags(sub)
        if repurpose_identifier:
            tags[REPURPOSE_TAG] = repurpose_identifier
        api_data = self.api_client.create_api(
            Name=func_name, ProtocolType="HTTP", Target=ret["FunctionArn"], Tags=tags
        )
        api_id = api_data["ApiId"]

        # function's arn format is: arn:aws:lambda:{region}:{account-id}:function:{name}
        account_id = ret["FunctionArn"].split(":")[4]
        self.lambda_client.add_permission(
            FunctionName=func_name,
            StatementId=str(uuid.uuid1()),
            Action="lambda:InvokeFunction",
            Principal="apigateway.amazonaws.com",
            SourceArn=f"arn:aws:execute-api:{self._region}:{account_id}:{api_id}/*/*",
        )
        self.logging.info(f"Created HTTP API {api_id} for function {func_name}.")

        return Endpoint(
            id=api_id,
            function_name=func_name,
            memory_mb=sub.function_memory_mb,
            image_size_mb=sub.function_image_size_mb,
            package_type=PackageType(sub.package_type),
            function=sub.function,
        )

    def repurpose_function(self, endpoint: Endpoint, sub: SubExperiment) -> Endpoint:
        """Update code, memory and entrypoint of a reused function."""
        waiter = self.lambda_client.get_waiter("function_updated_v2")
        other_function = endpoint.function != sub.function

        if other_function or endpoint.image_size_mb != sub.function_image_size_mb:
            self.logging.info(
                f"Updating code of {endpoint.function_name} to {sub.function} with an "
                f"artifact of {sub.function_image_size_mb:g}MB."
            )
            self.lambda_client.update_function_code(
                FunctionName=endpoint.function_name, **self._code(sub)
            )
            waiter.wait(FunctionName=endpoint.function_name)
            self.api_client.tag_resource(
                ResourceArn=self._api_arn(endpoint.id), Tags=self._artifact_tags(sub)
            )

        configuration: Dict[str, object] = {}
        if endpoint.memory_mb != sub.function_memory_mb:
            self.logging.info(
                f"Updating memory of {endpoint.function_name} to {sub.function_memory_mb}MB."
            )
            configuration["MemorySize"] = sub.function_memory_mb
        if other_function and endpoint.package_type == PackageType.ZIP:
            configuration["Runtime"] = sub.runtime
            configuration["Handler"] = sub.handler
        if configuration:
            self.lambda_client.update_function_configuration(
                FunctionName=endpoint.function_name, **configuration
            )
            waiter.wait(FunctionName=endpoint.function_name)

        # image functions settle after any update
        if endpoint.package_type == PackageType.CONTAINER:
            self._used_container_images = True

        return Endpoint(
            id=endpoint.id,
            function_name=endpoint.function_name,
            memory_mb=sub.function_memory_mb,
            image_size_mb=sub.function_image_size_mb,
            package_type=endpoint.package_type,
            function=sub.function,
        )

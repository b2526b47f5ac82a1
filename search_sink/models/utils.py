from urllib.parse import urlparse

import boto3
import requests.auth
import requests.utils
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from requests.models import PreparedRequest


class SigV4AuthPlugin(requests.auth.AuthBase):
    """
    Signs requests with AWS Signature Version 4 so the sink can index into Amazon OpenSearch Service
    (or Serverless, with service "aoss").
    """

    def __init__(self, service, region):
        self.service = service
        self.region = region
        self.credentials = boto3.Session().get_credentials()

    def __call__(self, r: PreparedRequest) -> PreparedRequest:
        # Headers added by requests after signing would invalidate the signature
        excluded_headers = requests.utils.default_headers().keys()

        # The signed Host header must not carry the port
        r.headers['Host'] = urlparse(r.url).hostname

        headers_to_sign = {k: v for k, v in r.headers.items() if k.lower() not in excluded_headers}
        aws_request = AWSRequest(method=r.method, url=r.url, data=r.body, headers=headers_to_sign)
        signer = SigV4Auth(self.credentials, self.service, self.region)
        if aws_request.body is not None:
            aws_request.headers['x-amz-content-sha256'] = signer.payload(aws_request)
        signer.add_auth(aws_request)
        r.headers.update(dict(aws_request.headers))
        return r

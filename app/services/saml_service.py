"""
SAML Service - service-provider side of SAML 2.0 SSO.

- build_sp_metadata: md:EntityDescriptor for an IdP to import
- parse_saml_response: base64 SAMLResponse -> attribute dict
- map_user_attributes: apply a company's attribute mapping

The response is first checked with defusedxml, then its XML signature is
verified with signxml against the company's IdP certificate. Attributes are
only ever read from the element the signature covers.

Element matching is by local name so both the saml2p:/saml2: and the
samlp:/saml: prefixes resolve.
"""

import base64
import binascii
import textwrap
from typing import Dict, Optional
from xml.etree.ElementTree import Element, SubElement, tostring

from defusedxml import ElementTree as SafeET
from defusedxml.common import DefusedXmlException
from signxml import XMLVerifier
from signxml.exceptions import SignXMLException

from app.core.config import get_settings
from app.core.logging_config import get_logger
from app.schemas.schemas import DEFAULT_SAML_ATTRIBUTE_MAPPING

settings = get_settings()
logger = get_logger(__name__)

MD_NS = "urn:oasis:names:tc:SAML:2.0:metadata"
PROTOCOL_NS = "urn:oasis:names:tc:SAML:2.0:protocol"
HTTP_POST_BINDING = "urn:oasis:names:tc:SAML:2.0:bindings:HTTP-POST"
EMAIL_NAMEID_FORMAT = "urn:oasis:names:tc:SAML:1.1:nameid-format:emailAddress"


class SamlResponseError(ValueError):
    """The SAMLResponse could not be decoded, has the wrong shape or is not signed by the IdP."""


def _local(tag) -> str:
    # lxml comments and processing instructions carry a non-string tag
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag.split(":")[-1]


def _child(element, name: str):
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def sp_urls(company_id: str, base_url: str = None) -> Dict[str, str]:
    base = (base_url or settings.app_base_url).rstrip("/")
    return {
        "entity_id": f"{base}/api/auth/sso/saml/metadata/{company_id}",
        "acs_url": f"{base}/api/auth/sso/saml/acs/{company_id}",
    }


def build_sp_metadata(company_id: str, base_url: str = None) -> str:
    urls = sp_urls(company_id, base_url)

    descriptor = Element("md:EntityDescriptor", {"xmlns:md": MD_NS, "entityID": urls["entity_id"]})
    sp = SubElement(descriptor, "md:SPSSODescriptor", {
        "AuthnRequestsSigned": "false",
        "WantAssertionsSigned": "true",
        "protocolSupportEnumeration": PROTOCOL_NS,
    })
    SubElement(sp, "md:NameIDFormat").text = EMAIL_NAMEID_FORMAT
    SubElement(sp, "md:AssertionConsumerService", {
        "Binding": HTTP_POST_BINDING,
        "Location": urls["acs_url"],
        "index": "1",
        "isDefault": "true",
    })

    body = tostring(descriptor, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body


def decode_saml_response(saml_response: str) -> bytes:
    try:
        return base64.b64decode(saml_response, validate=False)
    except (binascii.Error, ValueError) as e:
        raise SamlResponseError("SAMLResponse is not valid base64") from e


def to_pem(certificate: str) -> str:
    """Accept either a PEM block or the bare base64 body IdPs usually hand out."""
    certificate = (certificate or "").strip()
    if certificate.startswith("-----BEGIN"):
        return certificate
    body = "".join(certificate.split())
    lines = "\n".join(textwrap.wrap(body, 64))
    return f"-----BEGIN CERTIFICATE-----\n{lines}\n-----END CERTIFICATE-----\n"


def verify_signature(xml_bytes: bytes, certificate: str):
    """Return the signed element, or raise SamlResponseError."""
    if not certificate or not certificate.strip():
        raise SamlResponseError("SAML signing certificate is not configured")
    try:
        return XMLVerifier().verify(xml_bytes, x509_cert=to_pem(certificate)).signed_xml
    except (SignXMLException, ValueError) as e:
        logger.warning(f"SAML signature verification failed: {e}")
        raise SamlResponseError("Invalid SAML response signature") from e


def parse_saml_response(saml_response: str, certificate: str) -> Dict[str, str]:
    """
    Decode a base64 SAMLResponse, verify it against the IdP certificate and
    return {attribute Name: first value}.
    The NameID, when present, is returned under the key "NameID".
    """
    xml_bytes = decode_saml_response(saml_response)
    try:
        root = SafeET.fromstring(xml_bytes)
    except (SafeET.ParseError, DefusedXmlException) as e:
        raise SamlResponseError("Invalid SAML response XML") from e

    if _local(root.tag) != "Response":
        raise SamlResponseError("Invalid SAML response format")
    if _child(root, "Assertion") is None:
        raise SamlResponseError("No assertion found in SAML response")

    signed = verify_signature(xml_bytes, certificate)
    if _local(signed.tag) == "Assertion":
        assertion = signed
    elif _local(signed.tag) == "Response":
        assertion = _child(signed, "Assertion")
    else:
        assertion = None
    if assertion is None:
        raise SamlResponseError("SAML assertion is not covered by the signature")

    attributes: Dict[str, str] = {}

    subject = _child(assertion, "Subject")
    if subject is not None:
        name_id = _child(subject, "NameID")
        if name_id is not None and name_id.text:
            attributes["NameID"] = name_id.text.strip()

    statement = _child(assertion, "AttributeStatement")
    if statement is not None:
        for attribute in statement:
            if _local(attribute.tag) != "Attribute":
                continue
            name = attribute.get("Name")
            value = _child(attribute, "AttributeValue")
            if name and value is not None and value.text:
                attributes[name] = value.text.strip()

    return attributes


def map_user_attributes(attributes: Dict[str, str], mapping: Optional[Dict[str, str]] = None) -> dict:
    mapping = {**DEFAULT_SAML_ATTRIBUTE_MAPPING, **(mapping or {})}
    return {
        "email": attributes.get(mapping["email"]),
        "first_name": attributes.get(mapping["firstName"], ""),
        "last_name": attributes.get(mapping["lastName"], ""),
    }

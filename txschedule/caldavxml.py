##
# Copyright (c) 2005-2017 Apple Inc. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
##

"""
CalDAV XML names and element builders used by the scheduling service.

See RFC 4791 and RFC 6638.
"""

__all__ = [
    "caldav_namespace",
    "dav_namespace",
    "ScheduleResponse",
    "Response",
    "Recipient",
    "RequestStatus",
    "CalendarData",
    "Error",
    "ResponseDescription",
]

from xml.etree import ElementTree

dav_namespace = "DAV:"
caldav_namespace = "urn:ietf:params:xml:ns:caldav"

ElementTree.register_namespace("D", dav_namespace)
ElementTree.register_namespace("C", caldav_namespace)


def qname(namespace, name):
    return "{%s}%s" % (namespace, name,)


# Privileges
ScheduleDeliverInvite = qname(caldav_namespace, "schedule-deliver-invite")
ScheduleQueryFreeBusy = qname(caldav_namespace, "schedule-query-freebusy")
ReadFreeBusy = qname(caldav_namespace, "read-free-busy")

# Principal properties
ScheduleInboxURL = qname(caldav_namespace, "schedule-inbox-URL")
ScheduleOutboxURL = qname(caldav_namespace, "schedule-outbox-URL")
ScheduleDefaultCalendarURL = qname(caldav_namespace, "schedule-default-calendar-URL")
CalendarUserAddressSet = qname(caldav_namespace, "calendar-user-address-set")
CalendarUserType = qname(caldav_namespace, "calendar-user-type")

scheduleProperties = (
    ScheduleInboxURL,
    ScheduleOutboxURL,
    ScheduleDefaultCalendarURL,
    CalendarUserAddressSet,
    CalendarUserType,
)


def _element(namespace, name, *children, **kwargs):
    element = ElementTree.Element(qname(namespace, name))
    text = kwargs.get("text")
    if text is not None:
        element.text = text
    for child in children:
        if child is not None:
            element.append(child)
    return element



def HRef(href):
    return _element(dav_namespace, "href", text=href)



def ScheduleResponse(*responses):
    return _element(caldav_namespace, "schedule-response", *responses)



def Response(*children):
    return _element(caldav_namespace, "response", *children)



def Recipient(href):
    return _element(caldav_namespace, "recipient", HRef(href))



def RequestStatus(status):
    return _element(caldav_namespace, "request-status", text=status)



def CalendarData(calendar):
    return _element(caldav_namespace, "calendar-data", text=str(calendar).replace("\r\n", "\n"))



def Error(*conditions):
    return _element(dav_namespace, "error", *[
        _element(namespace, name) for namespace, name in conditions
    ])



def ResponseDescription(description):
    return _element(dav_namespace, "responsedescription", text=description)



def toxml(element):
    """
    Serialize an element as a complete UTF-8 XML document.
    """
    return ElementTree.tostring(element, encoding="utf-8", xml_declaration=True)

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
HTTP error handling for the scheduling request boundary.
"""

__all__ = [
    "ErrorResponse",
    "HTTPError",
]

from txschedule import caldavxml


class ErrorResponse(object):
    """
    A response carrying a DAV:error precondition element.

    @ivar code: the HTTP status code.
    @ivar error: a C{(namespace, name)} tuple for the precondition element,
        or C{None}.
    @ivar description: a human readable description, or C{None}.
    """

    def __init__(self, code, error=None, description=None):
        self.code = code
        self.error = error
        self.description = description


    def __repr__(self):
        return "<%s %d %r: %s>" % (self.__class__.__name__, self.code, self.error, self.description,)


    def toxml(self):
        error = caldavxml.Error(*((self.error,) if self.error is not None else ()))
        if self.description:
            error.append(caldavxml.ResponseDescription(self.description))
        return caldavxml.toxml(error)


    def headers(self):
        return {b"content-type": [b"application/xml; charset=utf-8"]}



class HTTPError(Exception):
    """
    Exception for propagating an HTTP error out of request processing.
    """

    def __init__(self, codeOrResponse):
        if isinstance(codeOrResponse, int):
            codeOrResponse = ErrorResponse(codeOrResponse)
        Exception.__init__(self, codeOrResponse)
        self.response = codeOrResponse


    def __repr__(self):
        return "<%s %s>" % (self.__class__.__name__, self.response,)


    @property
    def code(self):
        return self.response.code


    @property
    def description(self):
        return self.response.description


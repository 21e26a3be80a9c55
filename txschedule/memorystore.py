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
In-memory calendar storage and access control, used by tests and by hosts
that keep calendar data in process.
"""

__all__ = [
    "NodeType",
    "NotFoundError",
    "ResourceExistsError",
    "MemoryNode",
    "MemoryCalendarTree",
    "MemoryPrivilegeChecker",
]

import posixpath

from twisted.logger import Logger
from constantly import NamedConstant, Names
from zope.interface import implementer

from txschedule.config import config
from txschedule.ical import Component, InvalidICalendarDataError
from txschedule.icalendarstore import ICalendarNode, ICalendarTree, IPrivilegeChecker
from txschedule.instance import InstanceList

log = Logger()


class NodeType(Names):
    home = NamedConstant()
    calendar = NamedConstant()
    inbox = NamedConstant()
    outbox = NamedConstant()
    calendarObject = NamedConstant()



class NotFoundError(KeyError):
    pass



class ResourceExistsError(ValueError):
    pass



def normalizePath(path):
    path = posixpath.normpath("/" + path.strip("/"))
    return path



@implementer(ICalendarNode)
class MemoryNode(object):

    def __init__(self, path, nodeType, owner=None, data=None):
        self.path = path
        self.name = posixpath.basename(path)
        self.nodeType = nodeType
        self.owner = owner
        self.data = data


    def __repr__(self):
        return "<%s %s: %s>" % (self.__class__.__name__, self.nodeType.name, self.path,)


    def isCollection(self):
        return self.nodeType is not NodeType.calendarObject


    def isCalendar(self):
        return self.nodeType is NodeType.calendar


    def isCalendarObject(self):
        return self.nodeType is NodeType.calendarObject



@implementer(ICalendarTree)
class MemoryCalendarTree(object):

    def __init__(self):
        self._nodes = {}


    def createCollection(self, path, nodeType, owner=None):
        path = normalizePath(path)
        if path in self._nodes:
            raise ResourceExistsError(path)
        node = MemoryNode(path, nodeType, owner)
        self._nodes[path] = node
        return node


    def provisionHome(self, homePath, owner, calendars=("calendar",)):
        """
        Create a calendar home with an inbox, an outbox and the named
        calendars.
        """
        self.createCollection(homePath, NodeType.home, owner)
        self.createCollection(posixpath.join(homePath, config.Scheduling.CalDAV.InboxName), NodeType.inbox, owner)
        self.createCollection(posixpath.join(homePath, config.Scheduling.CalDAV.OutboxName), NodeType.outbox, owner)
        for name in calendars:
            self.createCollection(posixpath.join(homePath, name), NodeType.calendar, owner)


    def getNode(self, path):
        return self._nodes.get(normalizePath(path))


    def _objectNode(self, path):
        node = self.getNode(path)
        if node is None or not node.isCalendarObject():
            raise NotFoundError(path)
        return node


    def readEntry(self, path):
        return self._objectNode(path).data


    def createEntry(self, parentPath, name, content):
        parent = self.getNode(parentPath)
        if parent is None or not parent.isCollection():
            raise NotFoundError(parentPath)
        path = posixpath.join(parent.path, name)
        if path in self._nodes:
            raise ResourceExistsError(path)
        self._nodes[path] = MemoryNode(path, NodeType.calendarObject, parent.owner, content)
        log.debug("Created {path}", path=path)
        return path


    def overwrite(self, path, content):
        self._objectNode(path).data = content
        log.debug("Updated {path}", path=path)


    def delete(self, path):
        node = self._objectNode(path)
        del self._nodes[node.path]
        log.debug("Removed {path}", path=node.path)


    def listChildren(self, path):
        path = normalizePath(path)
        return [
            self._nodes[childPath] for childPath in sorted(self._nodes)
            if posixpath.dirname(childPath) == path and childPath != path
        ]


    def calendarObjects(self, path):
        """
        @return: the (path, L{Component}) pairs of every readable calendar
            object in the collection at C{path}.
        """
        results = []
        for child in self.listChildren(path):
            if not child.isCalendarObject():
                continue
            try:
                results.append((child.path, Component.fromString(child.data),))
            except InvalidICalendarDataError:
                log.error("Ignoring invalid calendar data at {path}", path=child.path)
        return results


    def findEntryByUID(self, homePath, uid):
        for child in self.listChildren(homePath):
            if not child.isCalendar():
                continue
            for path, calendar in self.calendarObjects(child.path):
                if calendar.resourceUID() == uid:
                    return path
        return None


    def queryByTimeRange(self, path, start, end):
        results = []
        for objectPath, calendar in self.calendarObjects(path):
            events = [c for c in calendar.subcomponents() if c.name() == "VEVENT"]
            instances = InstanceList(ignoreInvalidInstances=True)
            instances.expandTimeRanges(events, end, lowerLimit=start)
            if len(instances):
                results.append(objectPath)
        return results



@implementer(IPrivilegeChecker)
class MemoryPrivilegeChecker(object):
    """
    Grants every privilege except those explicitly denied. Every check is
    recorded in C{checks}.
    """

    def __init__(self):
        self.denied = set()
        self.checks = []


    def deny(self, path, privilege):
        self.denied.add((normalizePath(path), privilege,))


    def checkPrivilege(self, path, privilege, scope):
        self.checks.append((path, privilege, scope,))
        return (normalizePath(path), privilege,) not in self.denied

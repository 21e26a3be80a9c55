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
iCalendar Utilities
"""

__all__ = [
    "iCalendarProductID",
    "InvalidICalendarDataError",
    "Property",
    "Component",
]

import copy
import datetime

from icalendar import Calendar as iCalendar, Event, FreeBusy, Todo, Journal, Timezone, Alarm
from icalendar.cal import Component as iComponent
from icalendar.prop import vDDDTypes, vDuration, vInt, vPeriod

from txschedule.dateops import normalizeToUTC
from txschedule.scheduling.utils import normalizeCUAddr

iCalendarProductID = "-//CALENDARSERVER.ORG//NONSGML txschedule//EN"

_componentClasses = {
    "VCALENDAR": iCalendar,
    "VEVENT": Event,
    "VFREEBUSY": FreeBusy,
    "VTODO": Todo,
    "VJOURNAL": Journal,
    "VTIMEZONE": Timezone,
    "VALARM": Alarm,
}


class InvalidICalendarDataError(ValueError):
    pass



class Property (object):
    """
    iCalendar Property
    """

    def __init__(self, name, value, params=None, **kwargs):
        """
        @param name: the property's name
        @param value: the property's value
        @param params: a dictionary of parameters, where keys are parameter
            names and values are parameter values.
        """
        self._name = name.upper()

        if "icalendar" in kwargs:
            self._icalendar = kwargs["icalendar"]
            return

        holder = iComponent()
        holder.add(self._name, value, parameters=params)
        self._icalendar = holder[self._name]


    def __str__(self):
        return "%s:%s" % (self._name, self.strvalue(),)


    def __repr__(self):
        return "<%s: %r: %r>" % (self.__class__.__name__, self._name, self.strvalue(),)


    def duplicate(self):
        """
        Duplicate this object and all its contents.
        @return: the duplicated property.
        """
        return Property(self._name, None, icalendar=copy.deepcopy(self._icalendar))


    def name(self):
        return self._name


    def value(self):
        value = self._icalendar
        if isinstance(value, vDDDTypes):
            return value.dt
        elif isinstance(value, vPeriod):
            return (value.start, value.start + value.duration if value.by_duration else value.end,)
        elif isinstance(value, vDuration):
            return value.td
        elif isinstance(value, vInt):
            return int(value)
        elif hasattr(value, "dt"):
            return value.dt
        return str(value)


    def strvalue(self):
        if isinstance(self._icalendar, str):
            return str(self._icalendar)
        return self._icalendar.to_ical().decode("utf-8")


    def parameterNames(self):
        return list(self._icalendar.params.keys())


    def parameterValue(self, name, default=None):
        return self._icalendar.params.get(name, default)


    def hasParameter(self, paramname):
        return paramname in self._icalendar.params


    def setParameter(self, paramname, paramvalue):
        self._icalendar.params[paramname] = paramvalue


    def removeParameter(self, paramname):
        self._icalendar.params.pop(paramname, None)



class Component (object):
    """
    X{iCalendar} component.
    """

    @classmethod
    def fromString(cls, string):
        """
        Construct a L{Component} from a string.
        @param string: a string containing iCalendar data.
        @return: a L{Component} representing the first component described by
            C{string}.
        """
        if isinstance(string, bytes):
            string = string.decode("utf-8")
        try:
            calendar = iCalendar.from_ical(string)
        except (ValueError, KeyError, IndexError) as e:
            raise InvalidICalendarDataError("Invalid calendar data: %s" % (e,))

        if calendar.name != "VCALENDAR":
            raise InvalidICalendarDataError("Calendar data must be a VCALENDAR, not %s" % (calendar.name,))

        return cls(None, icalendar=calendar)


    @classmethod
    def newCalendar(cls):
        """
        Create and return an empty C{VCALENDAR} component.
        @return: a new C{VCALENDAR} component with appropriate metadata
            properties already set (version, product ID).
        """
        calendar = cls("VCALENDAR")
        calendar.addProperty(Property("VERSION", "2.0"))
        calendar.addProperty(Property("PRODID", iCalendarProductID))
        return calendar


    def __init__(self, name, **kwargs):
        """
        Use this constructor to initialize an empty L{Component}.
        To create a new L{Component} from X{iCalendar} data, don't use this
        constructor, use L{fromString} instead.
        @param name: the name (L{str}) of the X{iCalendar} component type for
            the component.
        """
        if "icalendar" in kwargs:
            self._icalendar = kwargs["icalendar"]
        else:
            klass = _componentClasses.get(name)
            if klass is not None:
                self._icalendar = klass()
            else:
                self._icalendar = iComponent()
                self._icalendar.name = name


    def __str__(self):
        return self._icalendar.to_ical().decode("utf-8")


    def __repr__(self):
        return "<%s: %r>" % (self.__class__.__name__, self.name(),)


    def duplicate(self):
        """
        Duplicate this object and all its contents.
        @return: the duplicated calendar.
        """
        if self.name() == "VCALENDAR":
            return Component.fromString(str(self))
        return Component(None, icalendar=copy.deepcopy(self._icalendar))


    def name(self):
        """
        @return: the name of the iCalendar type of this component.
        """
        return self._icalendar.name


    def subcomponents(self):
        """
        @return: an iterable of L{Component} objects, one for each subcomponent
            of this component.
        """
        return [Component(None, icalendar=c) for c in self._icalendar.subcomponents]


    def addComponent(self, component):
        self._icalendar.add_component(component._icalendar)


    def removeComponent(self, component):
        self._icalendar.subcomponents = [
            c for c in self._icalendar.subcomponents if c is not component._icalendar
        ]


    def mainType(self):
        """
        Determine the primary type of iCal component in this calendar.
        @return: the name of the primary type, or None.
        """
        mainComponent = self.mainComponent()
        return mainComponent.name() if mainComponent is not None else None


    def mainComponent(self):
        """
        Return the primary iCal component in this calendar. If a master
        component exists, use that, otherwise use the first override.
        @return: the L{Component} of the primary type, or None.
        """
        result = None
        for component in self.subcomponents():
            if component.name() == "VTIMEZONE":
                continue
            if not component.hasProperty("RECURRENCE-ID"):
                return component
            if result is None:
                result = component
        return result


    def hasProperty(self, name):
        return name in self._icalendar


    def properties(self, name=None):
        """
        @param name: if given and not C{None}, restricts the returned properties
            to those with the given C{name}.
        @return: an iterable of L{Property} objects, one for each property of
            this component.
        """
        if name is None:
            names = list(self._icalendar.keys())
        else:
            names = [name.upper()] if name in self._icalendar else []

        results = []
        for pname in names:
            values = self._icalendar[pname]
            if not isinstance(values, list):
                values = [values]
            results.extend([Property(pname, None, icalendar=value) for value in values])
        return results


    def getProperty(self, name):
        """
        Get one property from the property list.
        @param name: the L{str} name of the property to find.
        @return: the L{Property} found or None.
        """
        properties = self.properties(name)
        return properties[0] if properties else None


    def propertyValue(self, name):
        prop = self.getProperty(name)
        return prop.value() if prop is not None else None


    def addProperty(self, property):
        """
        Adds a property to this component.
        @param property: the L{Property} to add to this component.
        """
        self._icalendar.add(property.name(), property._icalendar)


    def removeProperty(self, name):
        """
        Remove every property with the given name from this component.
        """
        self._icalendar.pop(name, None)


    def replaceProperty(self, property):
        """
        Add or replace a property in this component.
        @param property: the L{Property} to add or replace in this component.
        """
        self.removeProperty(property.name())
        self.addProperty(property)


    def resourceUID(self):
        """
        @return: the UID of the subcomponents in this component.
        """
        mainComponent = self.mainComponent()
        if mainComponent is None:
            return None
        uid = mainComponent.propertyValue("UID")
        return str(uid) if uid is not None else None


    def schedulingComponents(self):
        """
        @return: the subcomponents that carry scheduling properties.
        """
        return [c for c in self.subcomponents() if c.name() in ("VEVENT", "VTODO", "VJOURNAL", "VFREEBUSY")]


    def getOrganizer(self):
        """
        Get the organizer value.
        @return: the string value of the Organizer property, or None.
        """
        prop = self.getOrganizerProperty()
        return prop.value() if prop is not None else None


    def getOrganizerProperty(self):
        """
        Get the organizer property.
        @return: the L{Property} of the Organizer, or None.
        """
        if self.name() == "VCALENDAR":
            for component in self.schedulingComponents():
                prop = component.getProperty("ORGANIZER")
                if prop is not None:
                    return prop
            return None
        return self.getProperty("ORGANIZER")


    def getAttendees(self):
        """
        Get the attendee values, unique and in order of appearance.
        @return: a list of attendee address strings.
        """
        components = self.schedulingComponents() if self.name() == "VCALENDAR" else (self,)
        attendees = []
        for component in components:
            for prop in component.properties("ATTENDEE"):
                if prop.value() not in attendees:
                    attendees.append(prop.value())
        return attendees


    def getAttendeeProperty(self, match):
        """
        Get the attendee property matching one of the values in the supplied
        list in the main component.
        @param match: a C{list} of calendar user address strings to try to
            match.
        @return: the matching Attendee L{Property}, or C{None}.
        """
        component = self.mainComponent() if self.name() == "VCALENDAR" else self
        if component is None:
            return None
        match = [normalizeCUAddr(address) for address in match]
        for prop in component.properties("ATTENDEE"):
            if normalizeCUAddr(prop.value()) in match:
                return prop
        return None


    def setParameterToValueForPropertyWithValue(self, paramname, paramvalue, propname, propvalue):
        """
        Add or change the parameter to the specified value on the first
        property with the specified value in each scheduling component.

        @return: C{True} if any property was changed.
        """
        propvalue = normalizeCUAddr(propvalue)
        changed = False
        for component in self.schedulingComponents():
            for prop in component.properties(propname):
                if normalizeCUAddr(prop.value()) == propvalue:
                    prop.setParameter(paramname, paramvalue)
                    changed = True
                    break
        return changed


    def removePropertyParameters(self, propname, params):
        """
        Remove the named parameters from every property with the given name
        in each scheduling component.
        """
        for component in self.schedulingComponents():
            for prop in component.properties(propname):
                for param in params:
                    prop.removeParameter(param)


    def getStartDateUTC(self):
        """
        Return the start date or date-time for the specified component
        converted to UTC.
        @return: the C{datetime} for the start, or None.
        """
        dtstart = self.propertyValue("DTSTART")
        return normalizeToUTC(dtstart) if dtstart is not None else None


    def getEndDateUTC(self):
        """
        Return the end date or date-time for the specified component,
        taking into account the presence or absence of DTEND/DURATION
        properties. The returned date-time is converted to UTC.
        @return: the C{datetime} for the end, or None.
        """
        _ignore_start, dtend = self.getEffectiveStartEnd()
        return normalizeToUTC(dtend) if dtend is not None else None


    def getEffectiveStartEnd(self):
        """
        Get the start and end of the component as given by its own
        properties. A date-time start with no end or duration has zero
        duration; a date start lasts one day.
        @return: a C{tuple} of (start, end), or (None, None).
        """
        dtstart = self.propertyValue("DTSTART")
        if dtstart is None:
            return (None, None)

        if self.hasProperty("DTEND"):
            dtend = self.propertyValue("DTEND")
        elif self.hasProperty("DURATION"):
            dtend = dtstart + self.propertyValue("DURATION")
        elif isinstance(dtstart, datetime.datetime):
            dtend = dtstart
        else:
            dtend = dtstart + datetime.timedelta(days=1)

        return (dtstart, dtend)


    def sequence(self):
        """
        @return: the highest SEQUENCE value of the scheduling components.
        """
        sequences = [c.propertyValue("SEQUENCE") or 0 for c in self.schedulingComponents()]
        return max(sequences) if sequences else 0

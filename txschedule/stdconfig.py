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
Default configuration values and the property list configuration provider.
"""

__all__ = [
    "DEFAULT_CONFIG",
    "PListConfigProvider",
]

import plistlib

import dateutil.tz

from twisted.logger import Logger

from txschedule.config import ConfigDict, ConfigProvider, ConfigurationError, config

log = Logger()

DEFAULT_CONFIG = {
    # Zone used for floating date-times when computing free busy
    "DefaultTimezone": "UTC",

    #
    # Scheduling related options
    #

    "Scheduling": {

        "CalDAV": {
            "AddressPatterns": [],  # Regex patterns to match local calendar user addresses (empty matches all)
            "InboxName": "inbox",  # Name of the schedule inbox in each calendar home
            "OutboxName": "outbox",  # Name of the schedule outbox in each calendar home
        },

        "Options": {
            "LimitFreeBusyAttendees": 30,  # Maximum number of attendees to request freebusy for (0 disables)
            "FreeBusyPrivilegeDenied": "skip",  # "skip" ignores a calendar without read-free-busy, "abort" fails the request
            "CalendarUserType": "INDIVIDUAL",  # Value reported for calendar-user-type
        },
    },
}



class PListConfigProvider(ConfigProvider):

    def loadConfig(self):
        configDict = {}
        if self._configFileName:
            configDict = self._parseConfigFromFile(self._configFileName)
        return ConfigDict(configDict)


    def _parseConfigFromFile(self, filename):
        try:
            with open(filename, "rb") as f:
                configDict = plistlib.load(f)
        except (IOError, OSError):
            log.error("Configuration file does not exist or is inaccessible: {f}", f=filename)
            raise ConfigurationError("Configuration file does not exist or is inaccessible: %s" % (filename,))
        except plistlib.InvalidFileException:
            log.error("Configuration file is not a valid property list: {f}", f=filename)
            raise ConfigurationError("Configuration file is not a valid property list: %s" % (filename,))
        return _cleanup(configDict, self._defaults)



def _cleanup(configDict, defaultDict):
    """
    Drop keys that have no default, logging each one.
    """
    cleanDict = {}
    for key, value in configDict.items():
        if key not in defaultDict:
            log.warn("Ignoring unknown configuration option: {key}", key=key)
            continue
        if isinstance(value, dict) and isinstance(defaultDict[key], dict):
            cleanDict[key] = _cleanup(value, defaultDict[key])
        else:
            cleanDict[key] = value
    return cleanDict



def _updateScheduling(configDict):
    options = configDict.Scheduling.Options

    if options.FreeBusyPrivilegeDenied not in ("skip", "abort"):
        log.error(
            "Invalid FreeBusyPrivilegeDenied value {value!r}, using \"skip\"",
            value=options.FreeBusyPrivilegeDenied,
        )
        options.FreeBusyPrivilegeDenied = "skip"

    if not isinstance(options.LimitFreeBusyAttendees, int) or options.LimitFreeBusyAttendees < 0:
        log.error(
            "Invalid LimitFreeBusyAttendees value {value!r}, disabling the limit",
            value=options.LimitFreeBusyAttendees,
        )
        options.LimitFreeBusyAttendees = 0



def _updateTimezone(configDict):
    # Floating times in free busy are resolved in this zone
    if dateutil.tz.gettz(configDict.DefaultTimezone) is None:
        log.error("Unknown DefaultTimezone {tzid!r}, using UTC", tzid=configDict.DefaultTimezone)
        configDict.DefaultTimezone = "UTC"



POST_UPDATE_HOOKS = (
    _updateScheduling,
    _updateTimezone,
)



config.setProvider(PListConfigProvider(DEFAULT_CONFIG))
config.addPostUpdateHooks(POST_UPDATE_HOOKS)
config.update()

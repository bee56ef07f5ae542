# Copyright 2024 The Pigweed Authors
#
# Licensed under the Apache License, Version 2.0 (the "License"); you may not
# use this file except in compliance with the License. You may obtain a copy of
# the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
# WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
# License for the specific language governing permissions and limitations under
# the License.
"""meshnet_hdlc"""

import setuptools  # type: ignore

setuptools.setup(
    name='meshnet_hdlc',
    version='0.0.1',
    author='Pigweed Authors',
    author_email='pigweed-developers@googlegroups.com',
    description='HDLC-style serial framing for mesh network nodes',
    packages=setuptools.find_packages(include=['meshnet_hdlc']),
    package_data={'meshnet_hdlc': ['py.typed']},
    zip_safe=False,
    python_requires='>=3.9',
    install_requires=[
        'pyserial>=3.5',
    ],
)
